"""Remote repository access: HTTPX client factory, retry policy, and listing client."""

from .client import create_http_client
from .repository import MavenRepository, RepositoryClient
from .retry import RetryableStatusError, create_http_retry_policy

__all__ = [
    "create_http_client",
    "create_http_retry_policy",
    "MavenRepository",
    "RepositoryClient",
    "RetryableStatusError",
]
