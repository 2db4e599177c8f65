class RosterError(Exception):
    """Base class for roster synchronization failures."""

    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message or self.__class__.__name__


class Unauthorized(RosterError):
    """No current session."""

    status_code = 401


class Forbidden(RosterError):
    """Authenticated, but not entitled to the action."""

    status_code = 403


class NotFound(RosterError):
    """Referenced ride or participant row has vanished."""

    status_code = 404


class FetchError(RosterError):
    """Transient store or network fault on read."""

    status_code = 503


class MutationError(RosterError):
    """Transient store or network fault on write."""

    status_code = 503


class SchemaError(RosterError):
    """A row returned by the store does not have the expected shape."""

    status_code = 502
