"""HTTP session creation and response handling."""

import json
import logging
from typing import Any

import aiohttp

from ..exceptions import RegistryError
from .types import RegistryConfig

logger = logging.getLogger(__name__)


async def create_session(
    config: RegistryConfig | None = None,
    connector: aiohttp.BaseConnector | None = None,
) -> aiohttp.ClientSession:
    """Create an aiohttp session carrying the registry credentials.

    Args:
        config: Registry configuration (timeout and credentials)
        connector: aiohttp connector for connection pooling

    Returns:
        aiohttp.ClientSession: New session; the caller owns closing it
    """
    headers = {}
    auth = None
    timeout = 30
    if config is not None:
        timeout = config.timeout
        if isinstance(config.auth, aiohttp.BasicAuth):
            auth = config.auth
        elif config.auth:
            headers["Authorization"] = config.auth

    return aiohttp.ClientSession(
        connector=connector,
        auth=auth,
        headers=headers,
        timeout=aiohttp.ClientTimeout(total=timeout),
    )


def parse_error_body(status: int, body: bytes) -> RegistryError:
    """Turn a registry error response into a RegistryError.

    The registry answers ``{"errors": [{"code": ..., "message": ...}]}``;
    anything else is reported with a generic code.
    """
    try:
        data = json.loads(body) if body else {}
        errors = data.get("errors") or []
        first = errors[0]
        return RegistryError(
            str(first.get("code", "UNKNOWN")), str(first.get("message", "")), status
        )
    except (ValueError, AttributeError, IndexError, TypeError):
        text = body.decode("utf-8", errors="replace").strip()
        return RegistryError("UNDEFINED_RESPONSE", f"HTTP {status} {text}".strip(), status)


async def check_response(resp: aiohttp.ClientResponse, *expected: int) -> None:
    """Raise RegistryError unless the response status is acceptable.

    Args:
        resp: Response to check
        expected: Accepted status codes; any 2xx when omitted

    Raises:
        RegistryError: If the status is not accepted
    """
    ok = resp.status in expected if expected else 200 <= resp.status < 300
    if ok:
        return

    body = await resp.read()
    error = parse_error_body(resp.status, body)
    logger.debug("%s %s -> %s", resp.method, resp.url, error)
    raise error


async def parse_json_response(resp: aiohttp.ClientResponse) -> dict[str, Any]:
    """Parse a JSON response body, tolerating an empty body.

    Raises:
        RegistryError: If the body is not a JSON object
    """
    body = await resp.read()
    if not body:
        return {}
    try:
        data = json.loads(body)
    except ValueError as e:
        raise RegistryError("PARSE_ERROR", f"Invalid JSON response: {e}", resp.status) from e
    if not isinstance(data, dict):
        raise RegistryError("PARSE_ERROR", "Expected a JSON object", resp.status)
    return data
