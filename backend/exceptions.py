class RemoteUnavailable(Exception):
    """The document store could not complete a call (network, auth or store error)."""

    def __init__(self, message: str = "Remote store unavailable"):
        super().__init__(message)
        self.message = message


class AuthError(Exception):
    def __init__(self, message: str = "Authentication failed"):
        super().__init__(message)
        self.message = message
