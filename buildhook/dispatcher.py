"""Webhook delivery: bounded, concurrent, failure-isolated."""

from __future__ import annotations

import logging
from typing import Optional

import anyio
import httpx

from .models import Webhook

LOGGER = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 4
DEFAULT_MAX_PENDING = 64


class DispatchRejected(Exception):
    """Raised by ``submit`` when the pending queue is full."""


def describe_failure(webhook: Webhook, exc: BaseException) -> str:
    return f"Failed to notify webhook '{webhook}' - {type(exc).__name__}: {exc}"


class Dispatcher:
    """Worker pool for webhook POSTs.

    Use as an async context manager: ``submit`` schedules a delivery and
    returns immediately; leaving the context waits for the deliveries that
    were accepted. At most ``max_workers`` exchanges run at once and at most
    ``max_pending`` may be queued or running; anything beyond is rejected.
    A failed delivery is logged and never retried.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        max_workers: int = DEFAULT_MAX_WORKERS,
        max_pending: int = DEFAULT_MAX_PENDING,
        log: logging.Logger | logging.LoggerAdapter = LOGGER,
    ):
        self._client = client
        self._owns_client = client is None
        self._limiter = anyio.CapacityLimiter(max_workers)
        self.max_pending = max_pending
        self.log = log
        self._pending = 0
        self._task_group: Optional[anyio.abc.TaskGroup] = None

    async def __aenter__(self) -> "Dispatcher":
        if self._client is None:
            self._client = httpx.AsyncClient()
        self._task_group = anyio.create_task_group()
        await self._task_group.__aenter__()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> Optional[bool]:
        try:
            return await self._task_group.__aexit__(exc_type, exc, tb)
        finally:
            self._task_group = None
            if self._owns_client and self._client is not None:
                await self._client.aclose()
                self._client = None

    @property
    def pending(self) -> int:
        return self._pending

    def submit(self, webhook: Webhook, url: str, payload: str) -> None:
        if self._task_group is None:
            raise RuntimeError("Dispatcher is not running; use 'async with'")
        if self._pending >= self.max_pending:
            raise DispatchRejected(
                f"{self._pending} deliveries pending (limit {self.max_pending})"
            )
        self._pending += 1
        self._task_group.start_soon(self._worker, webhook, url, payload)

    async def _worker(self, webhook: Webhook, url: str, payload: str) -> None:
        try:
            async with self._limiter:
                await self.dispatch(webhook, url, payload)
        except Exception as exc:
            # Never let one delivery cancel its siblings in the task group.
            self.log.warning(describe_failure(webhook, exc))
        finally:
            self._pending -= 1

    async def dispatch(self, webhook: Webhook, url: str, payload: str) -> bool:
        """POST one payload within the webhook's time budget. Returns success."""
        try:
            with anyio.fail_after(webhook.timeout):
                response = await self._client.post(
                    url,
                    content=payload.encode("utf-8"),
                    headers={"Content-Type": "application/json; charset=utf-8"},
                    timeout=webhook.timeout,
                )
                response.raise_for_status()
        except (httpx.HTTPError, TimeoutError) as exc:
            self.log.warning(describe_failure(webhook, exc))
            return False
        self.log.debug("Notified webhook '%s' (HTTP %s)", webhook, response.status_code)
        return True
