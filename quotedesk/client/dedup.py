"""Request deduplication and retry over an ``httpx.AsyncClient``."""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Mapping, Optional

import httpx

from ..constants import DEFAULT_MAX_RETRIES, DEFAULT_RETRY_DELAY
from ..errors import Transient

logger = logging.getLogger(__name__)

_SKIPPED_HEADERS = {"content-encoding", "content-length", "transfer-encoding"}


def request_key(method: str, url: Any, body: bytes | str = b"") -> str:
    if isinstance(body, bytes):
        body = body.decode("utf-8", errors="replace")
    return f"{method.upper()}:{url}:{body}"


def clone_response(response: httpx.Response) -> httpx.Response:
    """A fresh response over the same bytes so every awaiter can read it."""

    headers = [(name, value) for name, value in response.headers.multi_items() if name.lower() not in _SKIPPED_HEADERS]
    return httpx.Response(
        response.status_code,
        headers=headers,
        content=response.content,
        request=response.request,
    )


class RequestDeduplicator:
    """Share one in-flight request between concurrent callers asking for the same thing."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.client = client
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self._sleep = sleep
        self._in_flight: dict[str, asyncio.Future] = {}

    def _build(
        self,
        method: str,
        url: str,
        *,
        json_body: Any = None,
        params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> httpx.Request:
        content = None
        request_headers = dict(headers or {})
        if json_body is not None:
            content = json.dumps(json_body, sort_keys=True, separators=(",", ":"), default=str).encode("utf-8")
            request_headers.setdefault("Content-Type", "application/json")
        return self.client.build_request(method, url, params=params, content=content, headers=request_headers)

    async def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        request = self._build(method, url, **kwargs)
        key = request_key(request.method, request.url, request.content)
        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._send(key, request))
            self._in_flight[key] = task
        else:
            logger.debug("Deduplicating request to %s", request.url)
        response = await asyncio.shield(task)
        return clone_response(response)

    async def _send(self, key: str, request: httpx.Request) -> httpx.Response:
        try:
            return await self.client.send(request)
        finally:
            if self._in_flight.get(key) is asyncio.current_task():
                del self._in_flight[key]

    async def request_with_retry(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Retry network failures and 5xx replies with exponential backoff; 4xx returns at once."""

        last_error: Optional[Exception] = None
        for attempt in range(self.max_retries + 1):
            try:
                response = await self.request(method, url, **kwargs)
            except httpx.TransportError as exc:
                last_error = exc
            else:
                if response.status_code < 500:
                    return response
                last_error = Transient(
                    f"HTTP {response.status_code} from {method.upper()} {url}", status=response.status_code
                )
            if attempt < self.max_retries:
                delay = self.retry_delay * 2**attempt
                logger.warning(
                    "Retry %d/%d after %.2fs for %s %s: %s",
                    attempt + 1,
                    self.max_retries,
                    delay,
                    method.upper(),
                    url,
                    last_error,
                )
                await self._sleep(delay)
        raise last_error

    def in_flight_count(self) -> int:
        return len(self._in_flight)

    def in_flight_keys(self) -> list[str]:
        return list(self._in_flight)

    def clear(self) -> None:
        self._in_flight.clear()
