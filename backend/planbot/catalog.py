"""
Catalog Loader
Fetches the telecom plan catalog over HTTP and keeps one cached snapshot.

The snapshot is refreshed once it is older than the TTL. If a refresh fails
and the previous snapshot is still inside the stale window, the stale copy is
served instead of failing the request.
"""

import logging
import threading
import time
from typing import Any, Callable, Dict, Optional

import httpx
from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from .config import Settings
from .errors import CatalogUnavailableError, InvalidCatalogError

log = logging.getLogger(__name__)

REQUEST_HEADERS = {
    "User-Agent": "TelecomPlanBot/1.0",
    "Accept": "application/json",
    "Cache-Control": "no-cache",
}


def _should_retry(exc: BaseException) -> bool:
    """Timeouts and 404s are final; other transport/HTTP errors are retried."""
    if isinstance(exc, httpx.TimeoutException):
        return False
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code != 404
    return isinstance(exc, httpx.HTTPError)


def _describe_failure(exc: BaseException, attempts: int) -> str:
    if isinstance(exc, httpx.TimeoutException):
        return "Request timeout while fetching plans data"
    if isinstance(exc, httpx.HTTPStatusError) and exc.response.status_code == 404:
        return "Plans data source not found"
    return f"Failed to fetch plans data after {attempts} attempts: {exc}"


class CatalogLoader:
    def __init__(
        self,
        url: str,
        ttl_seconds: float = 3600,
        stale_seconds: float = 24 * 60 * 60,
        timeout: float = 10.0,
        max_retries: int = 3,
        client: Optional[httpx.Client] = None,
        retry_wait: Any = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.url = url
        self.ttl_seconds = ttl_seconds
        self.stale_seconds = stale_seconds
        self.timeout = timeout
        self.max_retries = max_retries
        self._client = client or httpx.Client(timeout=timeout)
        self._owns_client = client is None
        self._retry_wait = retry_wait or wait_exponential(multiplier=1, min=1, max=10)
        self._clock = clock

        self._snapshot: Optional[Dict[str, Any]] = None
        self._fetched_at = 0.0
        self._refresh_lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> "CatalogLoader":
        return cls(
            url=settings.catalog_url,
            ttl_seconds=settings.catalog_ttl_seconds,
            stale_seconds=settings.catalog_stale_seconds,
            timeout=settings.catalog_timeout_seconds,
            max_retries=settings.catalog_max_retries,
            **kwargs,
        )

    def _fetch_once(self) -> Any:
        response = self._client.get(self.url, headers=REQUEST_HEADERS, timeout=self.timeout)
        response.raise_for_status()
        return response.json()

    def _fetch(self) -> Dict[str, Any]:
        retrying = Retrying(
            stop=stop_after_attempt(self.max_retries + 1),
            wait=self._retry_wait,
            retry=retry_if_exception(_should_retry),
            before_sleep=before_sleep_log(log, logging.WARNING),
            reraise=True,
        )
        data = retrying(self._fetch_once)
        if not isinstance(data, dict) or not isinstance(data.get("telecom_providers"), dict):
            raise InvalidCatalogError()
        return data

    def _is_fresh(self, now: float) -> bool:
        return self._snapshot is not None and now - self._fetched_at <= self.ttl_seconds

    def _is_servable_stale(self, now: float) -> bool:
        return self._snapshot is not None and now - self._fetched_at < self.stale_seconds

    def get(self) -> Dict[str, Any]:
        """
        Current catalog snapshot; refreshes it when the TTL has passed.

        Only one caller refreshes at a time. While that refresh (retries and
        backoff included) is running, other callers get the stale snapshot if
        it is still inside the stale window, and wait for the refresh otherwise.
        """
        now = self._clock()
        if self._is_fresh(now):
            return self._snapshot

        if not self._refresh_lock.acquire(blocking=not self._is_servable_stale(now)):
            log.info("Catalog refresh already in progress, serving cached plans data")
            return self._snapshot

        try:
            now = self._clock()
            if self._is_fresh(now):
                return self._snapshot

            log.info("Fetching fresh plans data from %s", self.url)
            try:
                data = self._fetch()
            except (httpx.HTTPError, ValueError, InvalidCatalogError) as exc:
                log.error("Failed to fetch plans: %s", exc)
                if self._is_servable_stale(now):
                    log.warning("Using stale cached plans data due to fetch failure")
                    return self._snapshot
                if isinstance(exc, InvalidCatalogError):
                    raise
                if isinstance(exc, ValueError):
                    raise InvalidCatalogError("Plans data is not valid JSON") from exc
                raise CatalogUnavailableError(_describe_failure(exc, self.max_retries + 1)) from exc

            self._snapshot = data
            self._fetched_at = now
            log.info("Plans data fetched and cached successfully")
            return data
        finally:
            self._refresh_lock.release()

    def status(self) -> Dict[str, Any]:
        if self._snapshot is None:
            return {"catalog_loaded": False, "catalog_age_seconds": None}
        return {
            "catalog_loaded": True,
            "catalog_age_seconds": round(self._clock() - self._fetched_at, 1),
        }

    def close(self) -> None:
        if self._owns_client:
            self._client.close()
