from __future__ import annotations

import errno
import json

import httpx

from ato import __version__
from ato.core.config import Settings
from ato.core.errors import (
    CONNECTION_REFUSED_MESSAGE,
    GENERIC_NETWORK_MESSAGE,
    NO_DETAILS_MESSAGE,
    APIError,
    NetworkError,
)
from ato.logging import get_logger

_logger = get_logger("ato.http", component="http_client")
_MAX_CHAIN_DEPTH = 8


def build_http_client(settings: Settings, *, transport: httpx.BaseTransport | None = None) -> httpx.Client:
    timeout = httpx.Timeout(
        connect=settings.http_connect_timeout,
        read=settings.http_read_timeout,
        write=settings.http_write_timeout,
        pool=settings.http_pool_timeout,
    )
    _logger.debug(
        "http_client_created",
        base_url=settings.api_url,
        connect_timeout=settings.http_connect_timeout,
        read_timeout=settings.http_read_timeout,
        verify_ssl=settings.verify_ssl,
    )
    return httpx.Client(
        base_url=settings.api_url,
        timeout=timeout,
        verify=settings.verify_ssl,
        transport=transport,
        headers={"Accept": "application/json", "User-Agent": f"ato-cli/{__version__}"},
    )


def _is_connection_refused(exc: BaseException) -> bool:
    current: BaseException | None = exc
    seen: set[int] = set()
    depth = 0
    while current is not None and id(current) not in seen and depth < _MAX_CHAIN_DEPTH:
        seen.add(id(current))
        if isinstance(current, ConnectionRefusedError):
            return True
        if isinstance(current, OSError) and current.errno == errno.ECONNREFUSED:
            return True
        if "connection refused" in str(current).lower():
            return True
        current = current.__cause__ or current.__context__
        depth += 1
    return False


def network_error_from(exc: httpx.RequestError) -> NetworkError:
    if isinstance(exc, httpx.ConnectError) and _is_connection_refused(exc):
        return NetworkError(CONNECTION_REFUSED_MESSAGE, original=exc, connection_refused=True)
    return NetworkError(GENERIC_NETWORK_MESSAGE, original=exc)


def _envelope_message(body: str) -> str | None:
    try:
        payload = json.loads(body)
    except ValueError:
        return None
    if not isinstance(payload, dict):
        return None
    metadata = payload.get("metadata")
    if not isinstance(metadata, dict):
        return None
    message = metadata.get("message")
    if isinstance(message, str) and message:
        return message
    return None


def api_error_from(response: httpx.Response) -> APIError:
    """Build an APIError from a completed, non-successful response.

    The structured ``{"metadata": {"message": ...}}`` envelope wins; a body
    that is not the envelope is passed through verbatim, and an empty body
    gets a fixed placeholder.
    """

    body = response.text
    message = _envelope_message(body) if body else None
    if message is None:
        message = body if body else NO_DETAILS_MESSAGE
    return APIError(response.status_code, message)


__all__ = ["api_error_from", "build_http_client", "network_error_from"]
