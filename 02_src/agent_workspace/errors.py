"""Error taxonomy shared by the bus, relay and bridge queue."""


class WorkspaceError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = 500

    def __init__(self, message: str, **context):
        super().__init__(message)
        self.message = message
        self.context = context


class ValidationError(WorkspaceError):
    """Bad request shape. No persistence side effect."""

    status_code = 400


class NotFound(WorkspaceError):
    """Unknown agent, handoff or bridge item."""

    status_code = 404


class TransitionError(WorkspaceError):
    """Illegal status change. The record is left unchanged."""

    status_code = 409

    def __init__(self, message: str, current: str | None = None, requested: str | None = None):
        super().__init__(message, current=current, requested=requested)
        self.current = current
        self.requested = requested


class UpstreamError(WorkspaceError):
    """The completion provider failed or answered with a non-success status."""

    status_code = 502

    def __init__(self, message: str, provider: str | None = None, status: int | None = None):
        super().__init__(message, provider=provider, status=status)
        self.provider = provider
        self.status = status
