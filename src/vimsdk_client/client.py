"""Session client for the vSphere SOAP API."""

from __future__ import annotations

import asyncio
import functools
import os
from dataclasses import dataclass, field
from typing import Any, Mapping

from .auth import LOGOUT, AuthManager, SessionCookie
from .errors import (
    BootstrapError,
    ConnectionError,
    InvalidStateError,
    VimClientError,
    is_session_expired,
)
from .logger import LogLevel, create_logger
from .state import (
    Action,
    SessionState,
    Transition,
    on_close,
    on_command,
    on_command_succeeded,
    on_connect,
    on_connect_failed,
    on_connected,
    on_logout,
    on_session_expired,
)
from .transport import Transport, TransportFactory, TransportOptions, TransportResponse, create_client
from .types import ConnectionInfo, ExecuteResult, ManagedObjectReference, Session

BOOTSTRAP = "RetrieveServiceContent"
SERVICE_INSTANCE = "ServiceInstance"

DEFAULT_RECONNECT_LIMIT = 10
DEFAULT_TIMEOUT = 120.0


@dataclass
class ClientOptions:
    host: str
    username: str
    password: str = field(repr=False)
    ssl_verify: bool = False
    reconnect_limit: int = DEFAULT_RECONNECT_LIMIT
    timeout: float = DEFAULT_TIMEOUT
    transport_factory: TransportFactory | None = None
    logger: object | None = None
    log_level: LogLevel = "info"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None, **overrides: Any) -> "ClientOptions":
        """Read ``VIMSDK_*`` variables; keyword overrides win."""
        env = os.environ if environ is None else environ
        values: dict[str, Any] = {
            "host": env.get("VIMSDK_HOST", ""),
            "username": env.get("VIMSDK_USERNAME", ""),
            "password": env.get("VIMSDK_PASSWORD", ""),
            "ssl_verify": _env_flag(env.get("VIMSDK_SSL_VERIFY")),
            "reconnect_limit": int(env.get("VIMSDK_RECONNECT_LIMIT", DEFAULT_RECONNECT_LIMIT)),
            "timeout": float(env.get("VIMSDK_TIMEOUT", DEFAULT_TIMEOUT)),
            "log_level": env.get("VIMSDK_LOG_LEVEL", "info"),
        }
        values.update(overrides)
        return cls(**values)


class VimClient:
    """Owns one authenticated session against a vCenter or ESXi host.

    Every API call goes through :meth:`run_command`. The client logs in on
    first use and logs in again when the server reports that the session is
    no longer authenticated, up to ``reconnect_limit`` consecutive times.
    One logical caller is expected per client; a command issued while a login
    is in flight is sent without waiting for it.

    ``timeout`` is in seconds and applies to every call unless
    :meth:`run_command` is given its own.
    """

    def __init__(
        self,
        *,
        host: str,
        username: str,
        password: str,
        ssl_verify: bool = False,
        reconnect_limit: int = DEFAULT_RECONNECT_LIMIT,
        timeout: float = DEFAULT_TIMEOUT,
        transport_factory: TransportFactory | None = None,
        logger: object | None = None,
        log_level: LogLevel = "info",
    ) -> None:
        options = ClientOptions(
            host=host,
            username=username,
            password=password,
            ssl_verify=ssl_verify,
            reconnect_limit=reconnect_limit,
            timeout=timeout,
            transport_factory=transport_factory,
            logger=logger,
            log_level=log_level,
        )
        if options.reconnect_limit < 0:
            raise ValueError("reconnect_limit must not be negative")

        self.connection_info = ConnectionInfo(
            host=options.host,
            user=options.username,
            password=options.password,
            verify_tls=options.ssl_verify,
        )
        self.reconnect_limit = options.reconnect_limit
        self.reconnect_count = 0
        self.timeout = options.timeout

        root_logger = create_logger(logger=options.logger, level=options.log_level)
        self._logger = root_logger.child("client")
        self._logger.info("Initializing VimClient for %s", self.connection_info.host)
        self._transport_options = TransportOptions(verify_tls=options.ssl_verify, timeout=options.timeout)
        self._transport_factory: TransportFactory = options.transport_factory or functools.partial(
            create_client, logger=root_logger
        )
        self._auth = AuthManager(self.connection_info, root_logger)

        self._state = SessionState.DISCONNECTED
        self._transport: Transport | None = None
        self._connect_waiter: asyncio.Future[Session] | None = None
        self._generation = 0

        self.service_content: Mapping[str, Any] | None = None
        self.session_manager: ManagedObjectReference | str | None = None
        self.session: Session | None = None

    @classmethod
    def from_options(cls, options: ClientOptions) -> "VimClient":
        return cls(
            host=options.host,
            username=options.username,
            password=options.password,
            ssl_verify=options.ssl_verify,
            reconnect_limit=options.reconnect_limit,
            timeout=options.timeout,
            transport_factory=options.transport_factory,
            logger=options.logger,
            log_level=options.log_level,
        )

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def uri(self) -> str:
        return self.connection_info.service_url

    @property
    def transport(self) -> Transport | None:
        return self._transport

    @property
    def auth_cookie(self) -> SessionCookie | None:
        return self._auth.cookie

    @property
    def user_name(self) -> str | None:
        return self.session.user_name if self.session else None

    @property
    def full_name(self) -> str | None:
        return self.session.full_name if self.session else None

    async def __aenter__(self) -> "VimClient":
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def connect(self) -> Session | None:
        """Log in, or join the login already in flight.

        Returns the current session straight away when the client is READY.
        """
        return await self._connect(recovering=False)

    async def close(self) -> None:
        """Log out if a session is open; always ends DISCONNECTED."""
        action = self._apply(on_close(self._state))
        if action is Action.LOGOUT:
            transport = self._transport
            assert transport is not None and self.session_manager is not None
            self._logger.info("Logging out of %s", self.connection_info.host)
            try:
                await transport.invoke(
                    LOGOUT,
                    self._auth.logout_args(self.session_manager),
                    timeout=self.timeout,
                )
            except Exception as exc:
                self._logger.warn("Logout from %s failed: %s", self.connection_info.host, exc)
            finally:
                self._apply(on_logout(self._state))
        elif action is Action.RESET:
            # abandon the login in flight
            self._generation += 1
        await self._discard_transport()

    async def run_command(
        self,
        command: str,
        args: Mapping[str, Any] | None = None,
        *,
        timeout: float | None = None,
    ) -> TransportResponse:
        """Invoke ``command`` on the server and return result, raw body and headers.

        Connects first when DISCONNECTED. A "session is not authenticated"
        fault disconnects, logs in again and re-issues the same call.
        """
        call_args = dict(args or {})
        call_timeout = self.timeout if timeout is None else timeout
        recovering = False

        while True:
            action = on_command(self._state).action
            if action is Action.REJECT:
                raise InvalidStateError(
                    f"invalid connection state {self._state} for host {self.connection_info.host}"
                )
            if action is Action.CONNECT:
                await self._connect(recovering=recovering)
                continue

            transport = self._transport
            if transport is None:
                # CONNECTING but the transport is not created yet
                await self._connect(recovering=recovering)
                continue

            try:
                self._logger.trace("Invoking %s on %s", command, self.connection_info.host)
                response = await transport.invoke(command, call_args, timeout=call_timeout)
            except Exception as exc:
                error = self.soap_error_handler(exc, command, call_args)
                if error is not None:
                    raise error
                recovering = True
                self._logger.warn(
                    "Session on %s expired during %s; reconnecting (%d/%d)",
                    self.connection_info.host,
                    command,
                    self.reconnect_count,
                    self.reconnect_limit,
                )
                continue

            self._apply(on_command_succeeded(self._state, command))
            self.reconnect_count = 0
            return response

    async def call(
        self,
        command: str,
        args: Mapping[str, Any] | None = None,
        *,
        timeout: float | None = None,
    ) -> Any:
        response = await self.run_command(command, args, timeout=timeout)
        return response.result

    async def run_command_safe(
        self,
        command: str,
        args: Mapping[str, Any] | None = None,
        *,
        timeout: float | None = None,
    ) -> ExecuteResult[TransportResponse]:
        try:
            response = await self.run_command(command, args, timeout=timeout)
            return ExecuteResult(ok=True, data=response)
        except Exception as exc:
            return ExecuteResult(ok=False, error=exc)

    def soap_error_handler(
        self,
        error: BaseException | None,
        command: str | None = None,
        args: Mapping[str, Any] | None = None,
    ) -> BaseException | None:
        """Decide whether a failed call may be retried.

        Returns ``None`` when the session expired and another attempt fits in
        ``reconnect_limit``; the client is then DISCONNECTED and the counter
        has been incremented. Any other error comes back unchanged.
        """
        if error is None:
            error = VimClientError("general error")

        if is_session_expired(error):
            self._apply(on_session_expired(self._state))
            if self.reconnect_count + 1 < self.reconnect_limit:
                self.reconnect_count += 1
                return None
            self._logger.error(
                "Giving up on %s for %s after %d consecutive session expiries",
                self.connection_info.host,
                command,
                self.reconnect_count + 1,
            )

        return error

    async def _connect(self, *, recovering: bool) -> Session | None:
        action = self._apply(on_connect(self._state))
        if action is Action.NONE:
            return self.session
        if action is Action.AWAIT_CONNECT:
            assert self._connect_waiter is not None
            return await asyncio.shield(self._connect_waiter)
        if action is Action.REJECT:
            raise InvalidStateError(
                f"invalid connection state {self._state} for host {self.connection_info.host}"
            )
        return await self._establish(recovering=recovering)

    async def _establish(self, *, recovering: bool) -> Session:
        generation = self._generation
        waiter: asyncio.Future[Session] = asyncio.get_running_loop().create_future()
        self._connect_waiter = waiter
        try:
            session = await self._login_sequence(generation, recovering=recovering)
        except asyncio.CancelledError:
            # joined callers were not cancelled themselves
            await self._abandon_connect(
                generation,
                waiter,
                ConnectionError(f"Connect to {self.connection_info.host} was cancelled"),
            )
            raise
        except Exception as exc:
            await self._abandon_connect(generation, waiter, exc)
            raise
        finally:
            if self._connect_waiter is waiter:
                self._connect_waiter = None
        waiter.set_result(session)
        return session

    async def _login_sequence(self, generation: int, *, recovering: bool) -> Session:
        host = self.connection_info.host
        self._logger.info("Connecting to %s", self.uri)
        await self._discard_transport()
        transport = await self._transport_factory(self.uri, self._transport_options)
        if generation != self._generation:
            await transport.close()
            raise ConnectionError(f"Connection to {host} was closed during login")
        transport.set_endpoint(self.uri)
        self._transport = transport

        content = await transport.invoke(BOOTSTRAP, {"_this": SERVICE_INSTANCE}, timeout=self.timeout)
        result = content.result if isinstance(content.result, Mapping) else {}
        service_content = result.get("returnval")
        if not service_content:
            raise BootstrapError(f"{BOOTSTRAP} returned no service content from {host}", body=content.raw)
        session_manager = service_content.get("sessionManager") if isinstance(service_content, Mapping) else None
        if not session_manager:
            raise BootstrapError(f"Service content from {host} has no sessionManager", body=content.raw)

        session = await self._auth.login(transport, session_manager, timeout=self.timeout)

        if generation != self._generation:
            raise ConnectionError(f"Connection to {host} was closed during login")
        self._apply(on_connected(self._state))
        if self._state is not SessionState.READY:
            raise ConnectionError(f"Session on {host} was reset during login")
        self.service_content = service_content
        self.session_manager = session_manager
        self.session = session
        if not recovering:
            self.reconnect_count = 0
        self._logger.info("Session ready on %s for %s", host, session.user_name)
        return session

    async def _abandon_connect(
        self,
        generation: int,
        waiter: asyncio.Future[Session],
        error: BaseException,
    ) -> None:
        current = generation == self._generation
        if current:
            self._apply(on_connect_failed(self._state))
        waiter.set_exception(error)
        waiter.exception()  # mark retrieved; joined callers still get it on await
        if current:
            await self._discard_transport()

    async def _discard_transport(self) -> None:
        transport, self._transport = self._transport, None
        if transport is not None:
            await transport.close()

    def _apply(self, transition: Transition) -> Action:
        if transition.state is not self._state:
            self._logger.debug("%s: %s -> %s", self.connection_info.host, self._state, transition.state)
            self._state = transition.state
        if transition.action is Action.RESET:
            self.session = None
            self.service_content = None
            self.session_manager = None
            self._auth.clear()
            if self._transport is not None:
                self._transport.set_security(None)
        return transition.action


def _env_flag(value: str | None) -> bool:
    return (value or "").strip().lower() in {"1", "true", "yes", "on"}


__all__ = ["ClientOptions", "VimClient"]
