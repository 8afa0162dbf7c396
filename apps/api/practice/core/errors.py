"""Domain errors shared by the tenancy and task services."""


class PracticeError(Exception):
    """Base exception for practice service errors."""

    pass


class ValidationError(PracticeError):
    """A required field is missing or invalid (client-correctable)."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


class AuthorizationError(PracticeError):
    """The caller's office scope does not cover the target record."""

    pass


class NotFoundError(PracticeError):
    """Entity absent, or absent within the caller's office scope."""

    pass


class InvariantViolationError(PracticeError):
    """Stored office assignment is inconsistent. Needs data repair, not a retry."""

    pass


class DuplicateNameError(PracticeError):
    """Office (or roster) name already exists."""

    pass
