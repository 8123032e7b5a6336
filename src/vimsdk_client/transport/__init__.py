"""Transport implementations exposed to users."""

from .base import Transport, TransportFactory, TransportOptions, TransportResponse
from .http import SoapTransport, create_client

__all__ = [
    "SoapTransport",
    "Transport",
    "TransportFactory",
    "TransportOptions",
    "TransportResponse",
    "create_client",
]
