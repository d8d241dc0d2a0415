# === NAVMAP v1 ===
# {
#   "module": "JavaDB.network.repository",
#   "purpose": "Remote repository access capability and its Maven HTTP implementation",
#   "sections": [
#     {"id": "protocol", "name": "RepositoryClient", "anchor": "PRO", "kind": "api"},
#     {"id": "maven", "name": "MavenRepository", "anchor": "MVN", "kind": "api"},
#     {"id": "listing", "name": "Directory Listing Parsing", "anchor": "LST", "kind": "infra"}
#   ]
# }
# === /NAVMAP ===

"""Remote repository access used by the crawler.

The crawler only needs three capabilities from the remote repository: list the
entries of a directory, fetch a small text file (``maven-metadata.xml`` or a
``.sha1`` checksum), and digest a release file when no checksum is published.
:class:`RepositoryClient` names that contract; :class:`MavenRepository`
implements it over HTTP against a Maven layout served as HTML index pages.

Paths are always relative to the repository root; directory paths end with
``/``.
"""

from __future__ import annotations

import hashlib
import logging
import time
from typing import List, Optional, Protocol, runtime_checkable
from urllib.parse import unquote, urljoin

import httpx
from bs4 import BeautifulSoup
from tenacity import Retrying

from ..cancellation import CancellationToken
from ..errors import OperationCancelled, RepositoryError
from ..settings import HttpSettings
from .client import create_http_client
from .retry import RETRYABLE_STATUS_CODES, RetryableStatusError, create_http_retry_policy

logger = logging.getLogger(__name__)

_STREAM_CHUNK_SIZE = 1024 * 1024


@runtime_checkable
class RepositoryClient(Protocol):
    """Abstract remote repository access capability."""

    def list_dir(self, path: str) -> List[str]:
        """Return the entries of directory ``path``; sub-directories end with ``/``.

        Raises:
            RepositoryError: If the directory cannot be listed (including 404).
        """
        ...

    def fetch_text(self, path: str) -> Optional[str]:
        """Return the body of file ``path`` or ``None`` when it does not exist."""
        ...

    def sha1_of(self, path: str) -> Optional[bytes]:
        """Return the SHA-1 digest of file ``path`` or ``None`` when it does not exist."""
        ...

    def close(self) -> None:
        """Release network resources."""
        ...


class MavenRepository:
    """HTTP client for a Maven repository exposing HTML directory listings.

    Attributes:
        base_url: Root URL; every path is resolved relative to it.
    """

    def __init__(
        self,
        settings: HttpSettings,
        *,
        client: Optional[httpx.Client] = None,
        token: Optional[CancellationToken] = None,
    ) -> None:
        self.base_url = settings.repository_url
        self._settings = settings
        self._owns_client = client is None
        self._client = client or create_http_client(settings)
        self._token = token

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "MavenRepository":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # RepositoryClient
    # ------------------------------------------------------------------

    def list_dir(self, path: str) -> List[str]:
        response = self._get(path)
        if response.status_code == 404:
            raise RepositoryError(f"directory not found: {self.url(path)}", status_code=404)
        return parse_listing(response.text)

    def fetch_text(self, path: str) -> Optional[str]:
        response = self._get(path)
        if response.status_code == 404:
            return None
        return response.text

    def sha1_of(self, path: str) -> Optional[bytes]:
        url = self.url(path)
        digest = hashlib.sha1(usedforsecurity=False)
        try:
            for attempt in self._retry_policy():
                with attempt:
                    self._checkpoint()
                    # restart the digest on every attempt
                    digest = hashlib.sha1(usedforsecurity=False)
                    with self._client.stream("GET", url) as response:
                        if response.status_code == 404:
                            return None
                        self._raise_for_status(response)
                        for chunk in response.iter_bytes(_STREAM_CHUNK_SIZE):
                            digest.update(chunk)
        except httpx.HTTPError as exc:
            raise RepositoryError(f"GET {url} failed: {exc}") from exc
        logger.debug("computed sha1 from release file", extra={"url": url})
        return digest.digest()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def url(self, path: str) -> str:
        return urljoin(self.base_url, path)

    def _checkpoint(self) -> None:
        if self._token is not None and self._token.is_cancelled():
            raise OperationCancelled("crawl cancelled")

    def _sleep(self, seconds: float) -> None:
        if self._token is not None:
            self._token.wait(seconds)
        else:
            time.sleep(seconds)

    def _retry_policy(self) -> Retrying:
        return create_http_retry_policy(
            max_attempts=self._settings.max_attempts,
            max_delay_seconds=self._settings.max_delay_seconds,
            sleep=self._sleep,
        )

    def _get(self, path: str) -> httpx.Response:
        """GET ``path`` with retries; 404 is returned to the caller, other errors raise."""
        url = self.url(path)
        try:
            for attempt in self._retry_policy():
                with attempt:
                    self._checkpoint()
                    response = self._client.get(url)
                    if response.status_code != 404:
                        self._raise_for_status(response)
        except httpx.HTTPError as exc:
            raise RepositoryError(f"GET {url} failed: {exc}") from exc
        return response

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        if response.status_code in RETRYABLE_STATUS_CODES:
            response.read()
            raise RetryableStatusError(response)
        if response.is_error:
            raise RepositoryError(
                f"{response.request.method} {response.request.url} returned "
                f"{response.status_code}",
                status_code=response.status_code,
            )


# ============================================================================
# DIRECTORY LISTING PARSING (LST)
# ============================================================================


def parse_listing(html: str) -> List[str]:
    """Extract entry names from an HTML directory index page.

    Only relative links naming a direct child are kept: parent links,
    absolute URLs, sort links (``?C=N;O=D``) and anchors are dropped.

    Args:
        html: Body of the index page.

    Returns:
        Entry names in page order; directories keep their trailing ``/``.

    Examples:
        >>> parse_listing('<a href="../">../</a><a href="lib/">lib/</a>')
        ['lib/']
    """
    soup = BeautifulSoup(html, "html.parser")
    entries: List[str] = []
    seen = set()
    for anchor in soup.find_all("a"):
        href = anchor.get("href")
        if not href:
            continue
        name = unquote(href.strip())
        if name.startswith(("?", "#", "/", ".")) or "://" in name:
            continue
        if "/" in name.rstrip("/"):
            continue
        if name not in seen:
            seen.add(name)
            entries.append(name)
    return entries


__all__ = ["RepositoryClient", "MavenRepository", "parse_listing"]
