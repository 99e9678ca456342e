"""Version metadata for the rental booking engine."""

__app_name__ = "Rental Booking Engine"
__version__ = "1.0.0"
