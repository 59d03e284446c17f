class BackendError(Exception):
    """A backend request failed. ``message`` is safe to show to the user."""

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.message = message
        self.code = code


class AuthError(BackendError):
    pass


class NotFoundError(BackendError):
    pass
