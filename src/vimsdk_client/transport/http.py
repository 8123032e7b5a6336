"""SOAP-over-HTTP transport built on top of httpx."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Mapping

import httpx

from ..errors import ConnectionError, ParseError
from ..logger import BoundLogger, create_logger
from ..soap import build_envelope, parse_envelope
from .base import TransportOptions, TransportResponse

if TYPE_CHECKING:
    from ..auth import SessionCookie


class SoapTransport:
    """Posts ``urn:vim25`` envelopes to a single endpoint."""

    def __init__(
        self,
        uri: str,
        options: TransportOptions | None = None,
        *,
        client: httpx.AsyncClient | None = None,
        logger: BoundLogger | None = None,
    ) -> None:
        self._options = options or TransportOptions()
        self._endpoint = uri
        self._client = client or httpx.AsyncClient(
            verify=self._options.verify_tls,
            timeout=httpx.Timeout(self._options.timeout),
        )
        self._owns_client = client is None
        self._cookie: SessionCookie | None = None
        self._last_response_headers: httpx.Headers | None = None
        self._logger = (logger or create_logger()).child("soap")

    @property
    def endpoint(self) -> str:
        return self._endpoint

    @property
    def last_response_headers(self) -> httpx.Headers | None:
        return self._last_response_headers

    def set_endpoint(self, uri: str) -> None:
        self._endpoint = uri

    def set_security(self, cookie: SessionCookie | None) -> None:
        self._cookie = cookie

    async def invoke(
        self,
        operation: str,
        args: Mapping[str, Any],
        *,
        timeout: float | None = None,
    ) -> TransportResponse:
        payload = build_envelope(operation, args)
        headers = {
            "Content-Type": "text/xml; charset=utf-8",
            "SOAPAction": self._options.soap_action,
        }
        headers.update(self._options.headers)
        if self._cookie is not None:
            headers = self._cookie.add_headers(headers)

        effective_timeout = timeout if timeout is not None else self._options.timeout
        try:
            self._logger.debug("SOAP %s -> %s bytes=%d", operation, self._endpoint, len(payload))
            response = await self._client.post(
                self._endpoint,
                content=payload,
                headers=headers,
                timeout=httpx.Timeout(effective_timeout),
            )
        except httpx.TimeoutException as exc:
            raise ConnectionError(f"{operation} timed out after {effective_timeout}s") from exc
        except httpx.RequestError as exc:
            raise ConnectionError(f"Cannot connect to {self._endpoint}: {exc}") from exc

        self._last_response_headers = response.headers
        self._logger.debug(
            "SOAP %s <- status=%s bytes=%d",
            operation,
            response.status_code,
            len(response.content),
        )
        # faults arrive as HTTP 500 with an envelope body
        try:
            result = parse_envelope(response.content)
        except ParseError as exc:
            if response.is_error:
                raise ConnectionError(
                    f"Unexpected response {response.status_code} from {self._endpoint}",
                    body=response.text,
                ) from exc
            raise
        return TransportResponse(result=result, raw=response.text, headers=response.headers)

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()


async def create_client(
    uri: str,
    options: TransportOptions,
    *,
    logger: BoundLogger | None = None,
) -> SoapTransport:
    return SoapTransport(uri, options, logger=logger)


__all__ = ["SoapTransport", "create_client"]
