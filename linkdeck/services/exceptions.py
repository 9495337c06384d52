"""Exceptions raised by the bookmark and category operations."""


class LinkdeckError(Exception):
    status_code = 400

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ValidationError(LinkdeckError):
    """Raised before any store call when a required field is missing or invalid."""


class ConfirmationRequired(LinkdeckError):
    """Raised when a destructive action was requested without confirmation."""

    status_code = 409


class NotFoundError(LinkdeckError):
    """Raised when a row is not among the current user's rows."""

    status_code = 404


class StoreOperationError(LinkdeckError):
    """Wraps an error returned by the store for a read or a mutation."""

    status_code = 502

    def __init__(
        self, message: str, operation: str | None = None, code: str | None = None
    ) -> None:
        self.operation = operation
        self.code = code
        if code == "unauthorized":
            self.status_code = 401
        super().__init__(message)


class CascadeDeleteError(StoreOperationError):
    """Raised when one step of a category cascade delete fails.

    ``step`` is ``"bookmarks"`` when removing the category's bookmarks failed
    and ``"category"`` when removing the category itself failed. In both
    cases the store transaction has been rolled back.
    """

    def __init__(self, message: str, step: str) -> None:
        self.step = step
        super().__init__(message, operation=f"delete_category:{step}")


class IdentityError(LinkdeckError):
    """Raised when the identity provider rejects a credential or a token request."""

    status_code = 401
