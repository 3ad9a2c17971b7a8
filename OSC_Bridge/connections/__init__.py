"""Connection management for paranoid-ableton."""
from .errors import (
    ClassifiedError, ClientClosingError, ConnectionLostError, ErrorKind,
    HealthCheckError, NotReadyError, OscError, OscTimeoutError, PortInUseError,
)
from .osc import OscClient, OscConfig
from .session import ConnectionSession, SessionState, get_session, reset_session
from .transport import OscTransport
