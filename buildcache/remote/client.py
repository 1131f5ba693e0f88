"""HTTP client for the GitHub release index and asset downloads.

Every request carries an explicit timeout and is retried a bounded number
of times with exponential backoff when the failure is transient
(timeouts, connection errors, 429 and 5xx responses).  Anything else is
raised immediately.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import IO, Any, TypeVar

import httpx
from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.wait import wait_base

from buildcache import __version__
from buildcache.config import CacheSettings

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_API_URL = "https://api.github.com"
DOWNLOAD_CHUNK_SIZE = 1024 * 1024


def should_retry_on_status(exception: BaseException) -> bool:
    """True for 429 (rate limit) and 5xx responses."""
    if isinstance(exception, httpx.HTTPStatusError):
        status = exception.response.status_code
        return status == 429 or status >= 500
    return False


def should_retry_on_transport(exception: BaseException) -> bool:
    """True for timeouts and connection-level failures."""
    return isinstance(exception, httpx.TransportError)


def should_retry(exception: BaseException) -> bool:
    """Combined retry condition for index queries and asset downloads."""
    return should_retry_on_status(exception) or should_retry_on_transport(exception)


class ReleaseIndexClient:
    """Thin synchronous wrapper around ``httpx.Client`` with retries.

    Parameters
    ----------
    token:
        Optional credential, sent as ``Authorization: Bearer <token>``.
    transport:
        Optional ``httpx`` transport (tests pass ``httpx.MockTransport``).
    retry_wait:
        tenacity wait strategy between attempts.
    """

    def __init__(
        self,
        *,
        token: str = "",
        api_url: str = DEFAULT_API_URL,
        timeout: float = 60.0,
        max_attempts: int = 3,
        transport: httpx.BaseTransport | None = None,
        retry_wait: wait_base | None = None,
    ) -> None:
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": f"buildcache/{__version__}",
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.Client(
            base_url=api_url,
            headers=headers,
            timeout=httpx.Timeout(timeout),
            transport=transport,
            follow_redirects=True,
        )
        self._max_attempts = max_attempts
        self._retry_wait = retry_wait or wait_exponential(multiplier=1, min=1, max=10)

    @classmethod
    def from_settings(
        cls,
        settings: CacheSettings,
        *,
        transport: httpx.BaseTransport | None = None,
    ) -> ReleaseIndexClient:
        return cls(
            token=settings.token,
            api_url=settings.api_url,
            timeout=settings.http_timeout_seconds,
            max_attempts=settings.http_max_attempts,
            transport=transport,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> ReleaseIndexClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def _with_retry(self, call: Callable[[], T]) -> T:
        retrying = Retrying(
            stop=stop_after_attempt(self._max_attempts),
            retry=retry_if_exception(should_retry),
            wait=self._retry_wait,
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        return retrying(call)

    def get_json(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """GET *path* relative to the API root and decode the JSON body.

        Raises ``httpx.HTTPError`` (after retries) on failure.
        """

        def _call() -> Any:
            response = self._client.get(path, params=params)
            response.raise_for_status()
            return response.json()

        return self._with_retry(_call)

    def download(self, url: str, sink: IO[bytes]) -> int:
        """Stream *url* into *sink* and return the byte count.

        *sink* is rewound and truncated before every attempt so a retried
        download never appends to a previous partial body.
        """

        def _call() -> int:
            sink.seek(0)
            sink.truncate()
            written = 0
            with self._client.stream(
                "GET", url, headers={"Accept": "application/octet-stream"}
            ) as response:
                response.raise_for_status()
                for chunk in response.iter_bytes(DOWNLOAD_CHUNK_SIZE):
                    sink.write(chunk)
                    written += len(chunk)
            return written

        return self._with_retry(_call)
