"""Login handling and session cookie derivation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Mapping

import httpx

from .errors import AuthenticationError, SessionExpiredError, SoapFaultError
from .logger import BoundLogger
from .types import ConnectionInfo, ManagedObjectReference, Session

if TYPE_CHECKING:
    from .transport.base import Transport

LOGIN = "Login"
LOGOUT = "Logout"


@dataclass(frozen=True)
class SessionCookie:
    """Cookies issued by Login, replayed on every later request."""

    cookies: tuple[tuple[str, str], ...] = ()

    @classmethod
    def from_headers(cls, headers: Mapping[str, str] | None) -> "SessionCookie":
        pairs: list[tuple[str, str]] = []
        for value in httpx.Headers(headers or {}).get_list("set-cookie"):
            first = value.split(";", 1)[0]
            name, sep, cookie_value = first.partition("=")
            if not sep or not name.strip():
                continue
            pairs.append((name.strip(), cookie_value.strip()))
        return cls(tuple(pairs))

    @property
    def header_value(self) -> str:
        return "; ".join(f"{name}={value}" for name, value in self.cookies)

    def add_headers(self, headers: Mapping[str, str] | None = None) -> dict[str, str]:
        merged = dict(headers or {})
        if self.cookies:
            merged["Cookie"] = self.header_value
        return merged

    def __bool__(self) -> bool:
        return bool(self.cookies)


class AuthManager:
    """Runs Login against the session manager and installs the resulting cookie."""

    def __init__(self, connection: ConnectionInfo, logger: BoundLogger) -> None:
        self._connection = connection
        self._logger = logger.child("auth")
        self._cookie: SessionCookie | None = None

    @property
    def cookie(self) -> SessionCookie | None:
        return self._cookie

    @property
    def login_args(self) -> dict[str, str]:
        return {"userName": self._connection.user, "password": self._connection.password}

    async def login(
        self,
        transport: "Transport",
        session_manager: ManagedObjectReference | str,
        *,
        timeout: float | None = None,
    ) -> Session:
        args: dict[str, Any] = {"_this": session_manager}
        args.update(self.login_args)

        self._logger.info("Logging in to %s as %s", self._connection.host, self._connection.user)
        try:
            response = await transport.invoke(LOGIN, args, timeout=timeout)
        except SoapFaultError as exc:
            if isinstance(exc, SessionExpiredError):
                raise
            raise AuthenticationError(
                f"Login failed for {self._connection.user}@{self._connection.host}: {exc.fault_string}",
                body=exc.body,
                context=exc.context,
            ) from exc

        cookie = SessionCookie.from_headers(transport.last_response_headers)
        if not cookie:
            self._logger.warn("Login response from %s carried no session cookie", self._connection.host)
        transport.set_security(cookie)
        self._cookie = cookie

        result = response.result if isinstance(response.result, Mapping) else {}
        return Session.from_login(result.get("returnval"))

    def logout_args(self, session_manager: ManagedObjectReference | str) -> dict[str, Any]:
        return {"_this": session_manager}

    def clear(self) -> None:
        self._cookie = None


__all__ = ["AuthManager", "LOGIN", "LOGOUT", "SessionCookie"]
