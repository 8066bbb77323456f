from typing import Optional


class ConductorError(Exception):
    """Base class for every failure the client surfaces."""

    code = "ERR_UNKNOWN"

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message or self.__class__.__name__


class TransportError(ConductorError):
    """Connection-level failure, for request/response calls and the live stream."""

    code = "ERR_TRANSPORT"


class DecodeError(ConductorError):
    """A payload could not be decoded into the expected shape."""

    code = "ERR_DECODE"


class ApiError(ConductorError):
    """The server answered with a non-success status."""

    code = "ERR_API"

    def __init__(self, message: str = "", status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class NotFound(ApiError):
    """Referenced run or template is absent, locally or on the server."""

    code = "ERR_NOT_FOUND"


class StartFailed(ConductorError):
    code = "ERR_START_FAILED"


class StopFailed(ConductorError):
    code = "ERR_STOP_FAILED"

    def __init__(self, message: str = "", run_id: str = ""):
        super().__init__(message)
        self.run_id = run_id
