"""
http.py – Async HTTP client built on *aiohttp* with pluggable retry back-off,
          per-instance default headers and byte-capped downloads.
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Tuple, TypeVar

import aiohttp

from core.errors import HttpStatusError, PayloadTooLarge
from core.infra.waits import retry

logger = logging.getLogger(__name__)

Backoff = Callable[[int, BaseException], float]
T = TypeVar("T")


class HttpClient:
    """
    Thin wrapper over *aiohttp.ClientSession* adding:

    * global & per-request headers
    * retries for network errors and selected HTTP statuses, with either the
      default exponential back-off **with jitter** (honouring *Retry-After*)
      or any caller-supplied back-off
    * :class:`~core.errors.HttpStatusError` carrying the response body
    * async context-manager support
    """

    def __init__(
        self,
        *,
        session: Optional[aiohttp.ClientSession] = None,
        timeout: float = 30.0,
        max_retries: int = 5,
        base_delay: float = 1.0,
        max_delay: float = 60.0,
        backoff: Optional[Backoff] = None,
        retry_for_status: Optional[Tuple[int, ...]] = (429, 500, 502, 503, 504),
        default_headers: Optional[Mapping[str, str]] = None,
    ) -> None:
        self._external_session = session
        self._timeout = timeout
        self._max_retries = max_retries
        self._base_delay = base_delay
        self._max_delay = max_delay
        self._backoff = backoff or self._exponential_backoff
        # None means "retry on every error status"
        self._retry_for_status = retry_for_status
        self._own_session: Optional[aiohttp.ClientSession] = None
        self._default_headers: Dict[str, str] = dict(default_headers or {})

    # ---------------------------------------------- #
    # Async context-manager
    async def __aenter__(self) -> "HttpClient":  # noqa: D401
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:  # noqa: D401
        await self.close()

    # ---------------------------------------------- #
    # Session management
    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._external_session:
            return self._external_session
        if self._own_session is None or self._own_session.closed:
            timeout = aiohttp.ClientTimeout(total=self._timeout)
            self._own_session = aiohttp.ClientSession(timeout=timeout)
        return self._own_session

    async def close(self) -> None:
        if self._own_session and not self._own_session.closed:
            await self._own_session.close()
            self._own_session = None

    # ---------------------------------------------- #
    # Internal helpers
    @staticmethod
    def _parse_retry_after(header_val: str | None) -> Optional[float]:
        """Return seconds given a numeric Retry-After header value."""
        if not header_val:
            return None
        header_val = header_val.strip()
        if header_val.isdigit():
            return float(header_val)
        return None

    def _exponential_backoff(self, attempt: int, exc: BaseException) -> float:
        if isinstance(exc, HttpStatusError):
            retry_after = self._parse_retry_after(getattr(exc, "retry_after", None))
            if retry_after is not None:
                return retry_after
        exponential = min(self._base_delay * 2 ** (attempt - 1), self._max_delay)
        return exponential + random.uniform(0, self._base_delay)

    def _merge_headers(self, extra: Mapping[str, str] | None) -> Dict[str, str]:
        merged: Dict[str, str] = {**self._default_headers}
        if extra:
            merged.update(extra)
        return merged

    def _is_retryable_status(self, status: int) -> bool:
        if self._retry_for_status is None:
            return True
        return status in self._retry_for_status

    async def _request_once(self, method: str, url: str, **kwargs) -> aiohttp.ClientResponse:
        session = await self._ensure_session()
        resp = await session.request(method, url, **kwargs)
        if resp.status < 400:
            return resp

        try:
            body = await resp.text()
        except (aiohttp.ClientError, UnicodeDecodeError):
            body = ""
        finally:
            resp.release()
        error = HttpStatusError(resp.status, body, url)
        error.retry_after = resp.headers.get("Retry-After")  # type: ignore[attr-defined]
        raise error

    async def _request(
        self,
        method: str,
        url: str,
        consume: Callable[[aiohttp.ClientResponse], Awaitable[T]],
        **kwargs,
    ) -> T:
        """
        Perform a request with retries and return ``consume(response)``.

        The body is read inside each attempt, so a connection dropped mid-body
        is retried like any other network error.
        """
        kwargs["headers"] = self._merge_headers(kwargs.pop("headers", None))

        async def attempt() -> T:
            try:
                resp = await self._request_once(method, url, **kwargs)
            except HttpStatusError as e:
                if not self._is_retryable_status(e.status):
                    raise _Fatal(e) from e
                raise
            async with resp:
                return await consume(resp)

        start = time.monotonic()
        try:
            return await retry(
                attempt,
                attempts=self._max_retries,
                delay=self._backoff,
                retry_on=(aiohttp.ClientError, asyncio.TimeoutError, HttpStatusError),
                label=f"HTTP {method} {url}",
            )
        except _Fatal as e:
            raise e.error from None
        except (aiohttp.ClientError, asyncio.TimeoutError, HttpStatusError) as e:
            logger.warning(
                "HTTP %s %s failed after %d attempts (%.1fs): %s",
                method, url, self._max_retries, time.monotonic() - start, e,
            )
            raise

    # ---------------------------------------------- #
    # Public helpers
    async def get_text(self, url: str, **kwargs) -> str:
        return await self._request("GET", url, lambda resp: resp.text(), **kwargs)

    async def get_payload(
        self,
        url: str,
        *,
        max_bytes: Optional[int] = None,
        **kwargs,
    ) -> Tuple[bytes, str]:
        """
        Download a binary payload; returns ``(body, content_type)``.

        Raises :class:`~core.errors.PayloadTooLarge` when the declared or the
        actual size exceeds ``max_bytes``; the body is dropped in that case and
        the download is not retried.
        """

        async def read(resp: aiohttp.ClientResponse) -> Tuple[bytes, str]:
            if max_bytes is not None and resp.content_length and resp.content_length > max_bytes:
                raise PayloadTooLarge(resp.content_length)
            body = await resp.read()
            if max_bytes is not None and len(body) > max_bytes:
                raise PayloadTooLarge(len(body))
            return body, resp.headers.get("Content-Type", "")

        return await self._request("GET", url, read, **kwargs)

    async def post_json(
        self,
        url: str,
        data: Dict[str, Any] | Any,
        *,
        json: bool = True,
        **kwargs,
    ) -> Any:
        if json:
            kwargs["json"] = data
        else:
            kwargs["data"] = data
        return await self._request("POST", url, lambda resp: resp.json(content_type=None), **kwargs)

    # ---------------------------------------------- #
    # Mutators
    def set_default_header(self, key: str, value: str) -> None:
        self._default_headers[key] = value


class _Fatal(Exception):
    """Wraps an error the retry loop must not retry."""

    def __init__(self, error: HttpStatusError) -> None:
        super().__init__(str(error))
        self.error = error
