class DriveUpError(Exception):
    """Base class for all driveup exceptions."""
    pass

class ValidationError(DriveUpError):
    """Base class for validation errors."""
    pass

class InvalidSessionStateError(ValidationError):
    """Raised when a session mutation would break its invariants."""
    pass

class CredentialsError(DriveUpError):
    """Raised when valid credentials cannot be obtained."""
    pass

class IntegrityError(DriveUpError):
    """Raised when the remote end reports data that does not match the source."""
    pass

class TransportError(DriveUpError):
    """Raised when a session cannot be opened or queried."""

    def __init__(self, message, status_code=None, retryable=False):
        super().__init__(message)
        self.status_code = status_code
        self.retryable = retryable
