"""Public surface for the vSphere session client."""

from .auth import SessionCookie
from .client import ClientOptions, VimClient
from .errors import (
    AuthenticationError,
    BootstrapError,
    ConnectionError,
    InvalidStateError,
    ParseError,
    SessionExpiredError,
    SoapFaultError,
    VimClientError,
)
from .state import SessionState
from .transport import SoapTransport, Transport, TransportOptions, TransportResponse
from .types import ConnectionInfo, ExecuteResult, ManagedObjectReference, Session
from .version import __version__

__all__ = [
    "__version__",
    "AuthenticationError",
    "BootstrapError",
    "ClientOptions",
    "ConnectionError",
    "ConnectionInfo",
    "ExecuteResult",
    "InvalidStateError",
    "ManagedObjectReference",
    "ParseError",
    "Session",
    "SessionCookie",
    "SessionExpiredError",
    "SessionState",
    "SoapFaultError",
    "SoapTransport",
    "Transport",
    "TransportOptions",
    "TransportResponse",
    "VimClient",
    "VimClientError",
]
