import httpx
import pytest

from vimsdk_client.auth import AuthManager, SessionCookie
from vimsdk_client.errors import AuthenticationError, SessionExpiredError, SoapFaultError
from vimsdk_client.logger import create_logger
from vimsdk_client.transport.base import TransportResponse
from vimsdk_client.types import ConnectionInfo


class DummyTransport:
    def __init__(self, response=None, headers=None, error=None) -> None:
        self._response = response
        self._error = error
        self._headers = headers
        self.last_response_headers = None
        self.cookie = None
        self.invoked: list[tuple[str, dict]] = []

    def set_endpoint(self, uri: str) -> None:  # pragma: no cover - not used
        pass

    def set_security(self, cookie) -> None:
        self.cookie = cookie

    async def invoke(self, operation, args, *, timeout=None):
        self.invoked.append((operation, dict(args)))
        if self._error is not None:
            raise self._error
        self.last_response_headers = self._headers
        return self._response

    async def close(self) -> None:  # pragma: no cover - not used
        pass


def make_manager() -> AuthManager:
    return AuthManager(ConnectionInfo(host="vc.local", user="admin", password="x"), create_logger())


def test_cookie_from_multiple_set_cookie_headers() -> None:
    headers = httpx.Headers(
        [
            ("set-cookie", 'vmware_soap_session="52b3"; Path=/; HttpOnly; Secure;'),
            ("set-cookie", "vmware_client=VMware; Path=/"),
        ]
    )
    cookie = SessionCookie.from_headers(headers)
    assert cookie.header_value == 'vmware_soap_session="52b3"; vmware_client=VMware'
    assert cookie.add_headers({"SOAPAction": "urn:vim25"}) == {
        "SOAPAction": "urn:vim25",
        "Cookie": 'vmware_soap_session="52b3"; vmware_client=VMware',
    }


def test_cookie_without_headers_is_empty() -> None:
    cookie = SessionCookie.from_headers(None)
    assert not cookie
    assert cookie.add_headers({"a": "b"}) == {"a": "b"}


@pytest.mark.asyncio
async def test_login_installs_cookie_and_returns_session() -> None:
    transport = DummyTransport(
        TransportResponse(result={"returnval": {"userName": "admin", "fullName": "Administrator"}}, raw="", headers={}),
        headers={"Set-Cookie": "vmware_soap_session=abc; Path=/"},
    )
    manager = make_manager()

    session = await manager.login(transport, "SM-1")

    assert session.user_name == "admin"
    assert session.full_name == "Administrator"
    assert transport.invoked == [("Login", {"_this": "SM-1", "userName": "admin", "password": "x"})]
    assert transport.cookie.header_value == "vmware_soap_session=abc"
    assert manager.cookie is transport.cookie

    manager.clear()
    assert manager.cookie is None


@pytest.mark.asyncio
async def test_login_fault_becomes_authentication_error() -> None:
    fault = SoapFaultError("Cannot complete login due to an incorrect user name or password.")
    manager = make_manager()

    with pytest.raises(AuthenticationError, match="incorrect user name"):
        await manager.login(DummyTransport(error=fault), "SM-1")


@pytest.mark.asyncio
async def test_login_keeps_session_expired_fault() -> None:
    fault = SessionExpiredError("The session is not authenticated.")

    with pytest.raises(SessionExpiredError) as excinfo:
        await make_manager().login(DummyTransport(error=fault), "SM-1")
    assert excinfo.value is fault
