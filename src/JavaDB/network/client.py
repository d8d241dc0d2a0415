# === NAVMAP v1 ===
# {
#   "module": "JavaDB.network.client",
#   "purpose": "HTTPX client factory for the repository crawler.",
#   "sections": [
#     {
#       "id": "create-ssl-context",
#       "name": "_create_ssl_context",
#       "anchor": "function-create-ssl-context",
#       "kind": "function"
#     },
#     {
#       "id": "create-http-client",
#       "name": "create_http_client",
#       "anchor": "function-create-http-client",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""HTTPX client factory for the repository crawler.

One client is shared by every crawl worker thread: ``httpx.Client`` is
thread-safe and its connection pool is what bounds socket usage on the
crawling host, so the pool size is taken from :class:`HttpSettings` and should
cover the crawl limit.

Example:
    >>> from JavaDB.network import create_http_client
    >>> from JavaDB.settings import HttpSettings
    >>> client = create_http_client(HttpSettings())
    >>> client.close()
"""

from __future__ import annotations

import logging
import ssl
from typing import Optional

import certifi
import httpx

from ..settings import HttpSettings

logger = logging.getLogger(__name__)


def _create_ssl_context() -> ssl.SSLContext:
    """Create SSL context backed by the certifi bundle with verification enforced."""
    ctx = ssl.create_default_context(cafile=certifi.where())
    ctx.check_hostname = True
    ctx.verify_mode = ssl.CERT_REQUIRED
    return ctx


def create_http_client(
    settings: HttpSettings,
    *,
    transport: Optional[httpx.BaseTransport] = None,
) -> httpx.Client:
    """Create the HTTPX client used to list directories and fetch metadata.

    Args:
        settings: Timeouts, pool limits, and user agent.
        transport: Optional transport override (``httpx.MockTransport`` in tests).

    Returns:
        Configured ``httpx.Client``; the caller owns it and must close it.
    """
    kwargs = {}
    if transport is not None:
        kwargs["transport"] = transport
    else:
        kwargs["verify"] = _create_ssl_context()

    client = httpx.Client(
        timeout=httpx.Timeout(
            settings.timeout_read,
            connect=settings.timeout_connect,
        ),
        limits=httpx.Limits(
            max_connections=settings.pool_max_connections,
            max_keepalive_connections=settings.pool_max_connections,
        ),
        headers={"User-Agent": settings.user_agent},
        http2=settings.http2,
        follow_redirects=True,
        **kwargs,
    )

    logger.debug(
        "HTTPX client created",
        extra={
            "http2": settings.http2,
            "max_connections": settings.pool_max_connections,
            "repository_url": settings.repository_url,
        },
    )
    return client


__all__ = ["create_http_client"]
