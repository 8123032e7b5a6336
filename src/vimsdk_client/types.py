"""Shared value types."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, Mapping, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class ConnectionInfo:
    """Target endpoint and credentials; fixed for the lifetime of a client."""

    host: str
    user: str
    password: str = field(repr=False)
    verify_tls: bool = False

    @property
    def service_url(self) -> str:
        return f"https://{self.host}/sdk/vimService.wsdl"


@dataclass(frozen=True)
class ManagedObjectReference:
    """Reference to a server-side managed object, e.g. ``SessionManager:SessionManager``."""

    type: str
    value: str

    @classmethod
    def coerce(cls, ref: "ManagedObjectReference | str") -> "ManagedObjectReference":
        # well-known singletons use the type name as their id
        if isinstance(ref, cls):
            return ref
        return cls(type=str(ref), value=str(ref))

    def __str__(self) -> str:
        return f"{self.type}:{self.value}"


@dataclass
class Session:
    """The UserSession returned by Login, valid while the client is READY."""

    user_name: str | None
    full_name: str | None
    details: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_login(cls, returnval: Any) -> "Session":
        details = dict(returnval) if isinstance(returnval, Mapping) else {}
        return cls(
            user_name=details.get("userName"),
            full_name=details.get("fullName"),
            details=details,
        )

    def __getitem__(self, key: str) -> Any:
        return self.details[key]


@dataclass
class ExecuteResult(Generic[T]):
    ok: bool
    data: T | None = None
    error: Exception | None = None


__all__ = ["ConnectionInfo", "ExecuteResult", "ManagedObjectReference", "Session"]
