"""Custom service layer errors."""


class ServiceError(Exception):
    """Base error for service-layer failures."""


class ValidationError(ServiceError):
    """Raised when a business rule validation fails."""


class NotFoundError(ServiceError):
    """Raised when an entity is not found."""


class InvalidAmountError(ValidationError):
    """Raised for zero, negative or otherwise unacceptable amounts."""


class OverpaymentError(InvalidAmountError):
    """Raised when a payment would push the paid amount past the total."""


class BookingValidationError(ValidationError):
    """Raised when booking dates or details are not acceptable."""


class ExtensionValidationError(ValidationError):
    """Raised when an extension request breaks a precondition."""


class InvalidInputError(ValidationError):
    """Raised for malformed input such as missing or unparsable timestamps."""


class InvalidStateTransitionError(ServiceError):
    """Raised when a booking cannot move to the requested status."""


class BookingClosedError(InvalidStateTransitionError):
    """Raised when a completed or cancelled booking is mutated."""


class StorageFailureError(ServiceError):
    """Raised when the storage collaborator fails to read or write."""


class StaleBookingError(StorageFailureError):
    """Raised when a booking changed since it was loaded."""
