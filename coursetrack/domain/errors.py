class TrackerError(Exception):
    """Base error; ``code`` is what the HTTP layer reports."""

    code = "tracker_error"

    def __init__(self, message: str = ""):
        self.message = message or self.__class__.__doc__ or self.code
        super().__init__(self.message)


class Unauthenticated(TrackerError):
    """Sign in required"""

    code = "unauthenticated"


class InvalidCredentials(TrackerError):
    """Invalid credentials"""

    code = "invalid_credentials"


class ValidationFailed(TrackerError):
    """Invalid input"""

    code = "validation_failed"


class NotFound(TrackerError):
    """Not found"""

    code = "not_found"


class Forbidden(TrackerError):
    """Not allowed to modify this record"""

    code = "forbidden"


class Conflict(TrackerError):
    """Record was modified concurrently, retry"""

    code = "conflict"


class StoreUnavailable(TrackerError):
    """Store unavailable, try again later"""

    code = "store_unavailable"
