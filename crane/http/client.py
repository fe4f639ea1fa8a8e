# crane/http/client.py
from __future__ import annotations
import logging
from typing import Any
from urllib.parse import urlparse

import httpx

from crane.core.errors import RegistryError

logger = logging.getLogger(__name__)

__all__ = ["HTTPError", "createClient", "request"]



class HTTPError(RegistryError):
    def __init__(self, status: int, body: str):
        super().__init__(f"HTTP {status}: {body[:200]}", status=status)
        self.body = body



def createClient(
    *,
    timeoutMs: int = 30_000,
    headers: dict[str, str] | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """
    Build the AsyncClient used for registry and VCS host calls.

    `transport` is for tests (httpx.MockTransport); production uses the default pool.
    Raises RegistryError when the client cannot be constructed (bad header values etc.).
    """
    if timeoutMs <= 0:
        timeoutMs = 1
    try:
        return httpx.AsyncClient(
            timeout=httpx.Timeout(timeoutMs / 1_000),
            headers=headers,
            transport=transport,
            follow_redirects=True,
        )
    except (TypeError, ValueError, httpx.HTTPError) as err:
        raise RegistryError(f"Failed to create HTTP client: {err}") from err



async def request(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    headers: dict[str, str] | None = None,
    params: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """
    Single outbound HTTP call; no retries.

    Returns:
    {
        "status": int,
        "headers": dict[str,str],
        "text": str,
        "json": Any? # Present when response looks like JSON and parses
    }

    - Raises HTTPError for any status >= 400.
    - Raises RegistryError for transport-level errors (DNS, connect, timeout...) and unusable URLs.
    """
    method = str(method).upper()
    parsed = urlparse(url)
    logger.debug("http.request %s %s://%s%s", method, parsed.scheme, parsed.hostname, parsed.path)

    try:
        resp = await client.request(method, url, headers=headers, params=params)
    except (httpx.HTTPError, httpx.InvalidURL) as err:
        logger.debug("http.transportError %s %s: %s", method, url, err)
        raise RegistryError(f"{type(err).__name__} while requesting {url}: {err}") from err

    status = resp.status_code
    if status >= 400:
        logger.debug("http.error %s %s -> %d", method, url, status)
        raise HTTPError(status, resp.text)

    out: dict[str, Any] = {
        "status": status,
        "headers": dict(resp.headers), # note: Duplicate header keys are collapsed
        "text": resp.text,
    }

    # Best-effort JSON parse
    ctype = resp.headers.get("Content-Type", "")
    if "json" in ctype.lower():
        try:
            out["json"] = resp.json()
        except ValueError:
            # Keep going; caller still has "text"
            pass

    logger.debug("http.response %s %s -> %d (%d bytes)", method, url, status, len(resp.content))
    return out
