class OtpError(Exception):
    """Base class for failures raised by the one-time-code service."""


class ValidationError(OtpError):
    """Bad input. Raised before any store access, so nothing is consumed."""

    message = "Invalid request"

    def __init__(self, message: str = None):
        super().__init__(message or self.message)


class InvalidEmail(ValidationError):
    message = "Invalid email"


class InvalidPurpose(ValidationError):
    message = "Invalid purpose"


class MissingCode(ValidationError):
    message = "Missing code"


class DeliveryError(OtpError):
    """The notifier could not deliver a code. The issued record is kept."""


class StoreConflict(OtpError):
    """A conditional store write kept losing to concurrent writers."""
