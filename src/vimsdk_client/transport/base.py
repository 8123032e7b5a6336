"""Common transport abstractions."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Mapping, Protocol, runtime_checkable

if TYPE_CHECKING:
    from ..auth import SessionCookie


@dataclass(frozen=True)
class TransportOptions:
    """Per-client transport configuration.

    ``verify_tls=False`` disables certificate and hostname checks for this
    transport only; management networks commonly run self-signed certificates.
    """

    verify_tls: bool = False
    timeout: float = 120.0
    soap_action: str = "urn:vim25"
    headers: Mapping[str, str] = field(default_factory=dict)


@dataclass
class TransportResponse:
    result: Any
    raw: str
    headers: Mapping[str, str]


@runtime_checkable
class Transport(Protocol):
    @property
    def last_response_headers(self) -> Mapping[str, str] | None: ...

    def set_endpoint(self, uri: str) -> None: ...

    def set_security(self, cookie: "SessionCookie | None") -> None: ...

    async def invoke(
        self,
        operation: str,
        args: Mapping[str, Any],
        *,
        timeout: float | None = None,
    ) -> TransportResponse: ...

    async def close(self) -> None: ...


TransportFactory = Callable[[str, TransportOptions], Awaitable[Transport]]


__all__ = ["Transport", "TransportFactory", "TransportOptions", "TransportResponse"]
