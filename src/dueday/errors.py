"""Error types shared by the engine, adapters and CLI."""


class DuedayError(Exception):
    """Base class for all dueday errors."""

    pass


class ValidationError(DuedayError):
    """Raised when input is rejected before it reaches the store."""

    pass


class StoreError(DuedayError):
    """Raised when the remote store fails (network, auth, server)."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class NotFoundError(DuedayError):
    """Raised when an operation references an id that no longer exists."""

    pass
