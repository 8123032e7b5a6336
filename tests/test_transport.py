import httpx
import pytest

from vimsdk_client import ConnectionError, ParseError, SessionCookie, SessionExpiredError, SoapTransport
from vimsdk_client.transport.base import TransportOptions

URI = "https://vc.local/sdk/vimService.wsdl"

TIME_RESPONSE = (
    b'<soapenv:Envelope xmlns:soapenv="http://schemas.xmlsoap.org/soap/envelope/"><soapenv:Body>'
    b'<CurrentTimeResponse xmlns="urn:vim25"><returnval>2026-10-17T12:00:00Z</returnval></CurrentTimeResponse>'
    b"</soapenv:Body></soapenv:Envelope>"
)

EXPIRED_RESPONSE = (
    b'<soapenv:Envelope xmlns:soapenv="http://schemas.xmlsoap.org/soap/envelope/"><soapenv:Body>'
    b"<soapenv:Fault><faultcode>ServerFaultCode</faultcode>"
    b"<faultstring>The session is not authenticated.</faultstring></soapenv:Fault>"
    b"</soapenv:Body></soapenv:Envelope>"
)


def make_transport(handler) -> tuple[SoapTransport, list[httpx.Request]]:
    seen: list[httpx.Request] = []

    def record(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return handler(request)

    client = httpx.AsyncClient(transport=httpx.MockTransport(record))
    return SoapTransport(URI, TransportOptions(), client=client), seen


@pytest.mark.asyncio
async def test_invoke_posts_envelope_with_cookie() -> None:
    transport, seen = make_transport(
        lambda request: httpx.Response(200, content=TIME_RESPONSE, headers=[("set-cookie", "a=1; Path=/")])
    )
    transport.set_security(SessionCookie((("vmware_soap_session", "abc"),)))

    response = await transport.invoke("CurrentTime", {"_this": "ServiceInstance"})

    assert response.result == {"returnval": "2026-10-17T12:00:00Z"}
    assert "CurrentTimeResponse" in response.raw
    assert transport.last_response_headers.get_list("set-cookie") == ["a=1; Path=/"]
    request = seen[0]
    assert request.method == "POST"
    assert str(request.url) == URI
    assert request.headers["Cookie"] == "vmware_soap_session=abc"
    assert request.headers["SOAPAction"] == "urn:vim25"
    assert b"<vim25:CurrentTime>" in request.content


@pytest.mark.asyncio
async def test_set_endpoint_redirects_requests() -> None:
    transport, seen = make_transport(lambda request: httpx.Response(200, content=TIME_RESPONSE))
    transport.set_endpoint("https://esx.local/sdk")

    await transport.invoke("CurrentTime", {})

    assert str(seen[0].url) == "https://esx.local/sdk"


@pytest.mark.asyncio
async def test_fault_response_raises_session_expired() -> None:
    transport, _ = make_transport(lambda request: httpx.Response(500, content=EXPIRED_RESPONSE))

    with pytest.raises(SessionExpiredError):
        await transport.invoke("CurrentTime", {})


@pytest.mark.asyncio
async def test_non_soap_error_response_raises_connection_error() -> None:
    transport, _ = make_transport(lambda request: httpx.Response(503, content=b"Service Unavailable"))

    with pytest.raises(ConnectionError, match="503"):
        await transport.invoke("CurrentTime", {})


@pytest.mark.asyncio
async def test_non_soap_success_response_raises_parse_error() -> None:
    transport, _ = make_transport(lambda request: httpx.Response(200, content=b"<html></html>"))

    with pytest.raises(ParseError):
        await transport.invoke("CurrentTime", {})


@pytest.mark.asyncio
async def test_network_failure_raises_connection_error() -> None:
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    transport, _ = make_transport(refuse)

    with pytest.raises(ConnectionError, match="Cannot connect"):
        await transport.invoke("CurrentTime", {})


@pytest.mark.asyncio
async def test_timeout_raises_connection_error() -> None:
    def slow(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    transport, _ = make_transport(slow)

    with pytest.raises(ConnectionError, match="timed out after 5.0s"):
        await transport.invoke("CurrentTime", {}, timeout=5.0)
