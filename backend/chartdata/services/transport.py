"""
HTTP transport for the Superset-style backend API.

Thin async wrapper around ``httpx.AsyncClient`` that issues
GET/POST requests and hands back the parsed JSON body.  POST
payloads follow the Superset client convention: each value is
JSON-stringified and sent as a form field, so endpoints like
``/superset/explore_json/`` receive ``form_data=<json>``.

Failures are never wrapped: non-2xx responses raise
``httpx.HTTPStatusError`` and network problems raise
``httpx.RequestError``.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

import httpx

from chartdata.config import settings

logger = logging.getLogger(__name__)


@dataclass
class TransportResponse:
    """Parsed response returned by the transport."""

    status: int
    json: Any


def _encode_form(
    payload: Mapping[str, Any],
    stringify: bool,
) -> Dict[str, str]:
    """
    Encode a POST payload as form fields.

    Parameters:
        payload (Mapping): Field name to value.
        stringify (bool): JSON-encode non-string values.

    Returns:
        dict[str, str]: Form fields ready for ``data=``.
    """
    fields = {}
    for key, value in payload.items():
        if value is None:
            continue
        if stringify and not isinstance(value, str):
            fields[key] = json.dumps(value)
        else:
            fields[key] = value
    return fields


class SupersetTransport:
    """
    Async GET/POST client bound to one backend base URL.

    Parameters:
        base_url (str): Root URL of the backend API.
        timeout (float): Default request timeout in seconds.
        client (httpx.AsyncClient, optional): Pre-built client,
            e.g. one using ``httpx.MockTransport`` in tests.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url or settings.superset_url
        self.timeout = (
            timeout if timeout is not None
            else settings.request_timeout
        )
        self._client = client or httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
        )

    async def __aenter__(self) -> "SupersetTransport":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying connection pool."""
        await self._client.aclose()

    async def get(
        self,
        endpoint: str,
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> TransportResponse:
        """
        Issue a GET request and parse the JSON body.

        Parameters:
            endpoint (str): Path relative to the base URL,
                query string included.
            headers (dict, optional): Extra request headers.
            timeout (float, optional): Per-request timeout.

        Returns:
            TransportResponse: Status code and parsed body.
        """
        return await self._request(
            "GET", endpoint, headers=headers, timeout=timeout,
        )

    async def post(
        self,
        endpoint: str,
        payload: Optional[Mapping[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
        stringify: bool = True,
        json_payload: bool = False,
    ) -> TransportResponse:
        """
        Issue a POST request and parse the JSON body.

        Parameters:
            endpoint (str): Path relative to the base URL.
            payload (Mapping, optional): Fields to send.
            headers (dict, optional): Extra request headers.
            timeout (float, optional): Per-request timeout.
            stringify (bool): JSON-encode non-string form values.
            json_payload (bool): Send ``payload`` as a JSON body
                instead of form fields.

        Returns:
            TransportResponse: Status code and parsed body.
        """
        payload = payload or {}
        if json_payload:
            body = {"json": dict(payload)}
        else:
            body = {"data": _encode_form(payload, stringify)}
        return await self._request(
            "POST", endpoint,
            headers=headers, timeout=timeout, **body,
        )

    async def _request(
        self,
        method: str,
        endpoint: str,
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
        **kwargs,
    ) -> TransportResponse:
        if timeout is not None:
            kwargs["timeout"] = timeout
        logger.debug("[transport] %s %s", method, endpoint)
        response = await self._client.request(
            method, endpoint, headers=headers, **kwargs,
        )
        response.raise_for_status()
        return TransportResponse(
            status=response.status_code,
            json=response.json(),
        )


# Process-wide default transport, created lazily from settings.
_transport: Optional[SupersetTransport] = None


def get_transport() -> SupersetTransport:
    """Return the shared transport, creating it on first use."""
    global _transport
    if _transport is None:
        _transport = SupersetTransport()
    return _transport


def set_transport(
    transport: Optional[SupersetTransport],
) -> None:
    """Replace (or with ``None`` reset) the shared transport."""
    global _transport
    _transport = transport


async def close_transport() -> None:
    """Close and drop the shared transport, if one was created."""
    global _transport
    if _transport is not None:
        await _transport.aclose()
        _transport = None
