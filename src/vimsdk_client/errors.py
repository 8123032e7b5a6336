"""Custom exceptions raised by the vSphere session client."""

from __future__ import annotations

import re
from typing import Any

SESSION_EXPIRED_PATTERN = re.compile(r"session is not authenticated")


class VimClientError(Exception):
    """Base error for all client failures."""

    def __init__(self, message: str, *, context: Any | None = None, body: str | None = None) -> None:
        super().__init__(message)
        self.context = context
        self.body = body if body is not None else message


class ConnectionError(VimClientError):
    """Raised when the client cannot reach the server."""


class ParseError(VimClientError):
    """Raised when a response cannot be parsed."""


class AuthenticationError(VimClientError):
    """Raised when login fails or the session is rejected."""


class BootstrapError(VimClientError):
    """Raised when RetrieveServiceContent returns nothing usable."""


class InvalidStateError(VimClientError):
    """Raised when a command is issued in a state the client does not know."""


class SoapFaultError(VimClientError):
    """Raised when the server answers with a SOAP fault."""

    def __init__(
        self,
        fault_string: str,
        *,
        fault_code: str | None = None,
        body: str | None = None,
        context: Any | None = None,
    ) -> None:
        super().__init__(fault_string, context=context, body=body)
        self.fault_code = fault_code
        self.fault_string = fault_string


class SessionExpiredError(SoapFaultError, AuthenticationError):
    """The server no longer accepts the session cookie."""


def is_session_expired_message(text: str | None) -> bool:
    return bool(text and SESSION_EXPIRED_PATTERN.search(text))


def is_session_expired(error: BaseException) -> bool:
    """True when the error carries the server's "session is not authenticated" fault."""
    if isinstance(error, SessionExpiredError):
        return True
    body = getattr(error, "body", None)
    if isinstance(body, str) and is_session_expired_message(body):
        return True
    return is_session_expired_message(str(error))


__all__ = [
    "SESSION_EXPIRED_PATTERN",
    "AuthenticationError",
    "BootstrapError",
    "ConnectionError",
    "InvalidStateError",
    "ParseError",
    "SessionExpiredError",
    "SoapFaultError",
    "VimClientError",
    "is_session_expired",
    "is_session_expired_message",
]
