"""Error taxonomy for the OSC connection layer."""

import enum
import errno
from typing import NamedTuple


class ErrorKind(str, enum.Enum):
    NOT_READY = "NOT_READY"
    TIMEOUT = "TIMEOUT"
    PORT_IN_USE = "PORT_IN_USE"
    CLOSING = "CLOSING"
    CONNECTION = "CONNECTION"
    CONNECTION_LOST = "CONNECTION_LOST"
    UNKNOWN = "UNKNOWN"


class ClassifiedError(NamedTuple):
    """Machine-readable view of a failure, as returned by ``classify_error``."""
    kind: ErrorKind
    message: str
    recoverable: bool


class OscError(Exception):
    """Base class for every error raised by the OSC connection layer."""
    kind: ErrorKind = ErrorKind.UNKNOWN


class NotReadyError(OscError, ConnectionError):
    kind = ErrorKind.NOT_READY


class OscTimeoutError(OscError, TimeoutError):
    kind = ErrorKind.TIMEOUT


class PortInUseError(OscError, OSError):
    """The local receive port is held by another process."""
    kind = ErrorKind.PORT_IN_USE

    def __init__(self, message: str, port: int = None):
        super().__init__(errno.EADDRINUSE, message)
        self.port = port

    def __str__(self):
        return self.strerror


class ClientClosingError(OscError, ConnectionError):
    kind = ErrorKind.CLOSING


class HealthCheckError(OscError, ConnectionError):
    kind = ErrorKind.CONNECTION


class ConnectionLostError(OscError, ConnectionError):
    kind = ErrorKind.CONNECTION_LOST


def is_port_in_use(err: BaseException) -> bool:
    if isinstance(err, PortInUseError):
        return True
    if isinstance(err, OSError) and err.errno == errno.EADDRINUSE:
        return True
    return "address already in use" in str(err).lower()
