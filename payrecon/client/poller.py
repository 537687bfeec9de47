"""Checkout-side payment status poller.

After a purchase is submitted the storefront polls the status-read endpoint
until the order settles. The loop is cooperative and single-threaded:

* one request in flight at a time; a tick that fires while the previous
  request is still running is skipped,
* the base interval comes from ``POLL_INTERVAL_SECONDS`` and doubles for every
  consecutive failure, capped at ``POLL_MAX_INTERVAL_SECONDS``; a successful
  response resets it,
* ``max_failures`` consecutive failures abandon the poller with a message
  telling the customer to refresh instead of spinning forever,
* ``stop()`` must be called on teardown; it cancels the timer and any
  request still in flight.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from typing import Any, Awaitable, Callable, Optional

import httpx

from payrecon.core.config import Settings


logger = logging.getLogger(__name__)

ABANDONED_MESSAGE = "Status could not be checked, refresh the page to see the latest status"

_SUCCESS_STATUSES = frozenset({"settlement", "capture"})
_FAILED_STATUSES = frozenset({"deny", "cancel", "expire"})

Fetch = Callable[[str], Awaitable[dict]]


class PollerState(str, enum.Enum):
    IDLE = "idle"
    POLLING = "polling"
    RESOLVED = "resolved"
    ABANDONED = "abandoned"
    CANCELLED = "cancelled"


class PollOutcome(str, enum.Enum):
    SUCCESS = "success"
    FAILED = "failed"


class StatusCheckError(Exception):
    pass


def classify_status(data: dict) -> Optional[PollOutcome]:
    payment_status = str(data.get("payment_status") or "").lower()
    if payment_status == "paid":
        return PollOutcome.SUCCESS
    if payment_status == "failed":
        return PollOutcome.FAILED
    transaction_status = str(data.get("transaction_status") or "").lower()
    if transaction_status in _SUCCESS_STATUSES:
        return PollOutcome.SUCCESS
    if transaction_status in _FAILED_STATUSES:
        return PollOutcome.FAILED
    return None


class StatusPoller:
    def __init__(
        self,
        order_id: str,
        fetch: Fetch,
        *,
        interval: float = 5.0,
        max_interval: float = 30.0,
        max_failures: int = 5,
        on_update: Optional[Callable[[dict], Any]] = None,
    ):
        if max_failures < 1:
            raise ValueError("max_failures must be at least 1")
        self.order_id = order_id
        self.fetch = fetch
        self.interval = max(0.0, float(interval))
        self.max_interval = max(self.interval, float(max_interval))
        self.max_failures = int(max_failures)
        self.on_update = on_update

        self.state = PollerState.IDLE
        self.outcome: Optional[PollOutcome] = None
        self.message: Optional[str] = None
        self.last_data: Optional[dict] = None
        self.consecutive_failures = 0
        self.requests_made = 0
        self.skipped_ticks = 0

        self._request: Optional[asyncio.Future] = None
        self._runner: Optional[asyncio.Task] = None

    @classmethod
    def from_settings(cls, order_id: str, fetch: Fetch, settings: Settings, **kwargs) -> "StatusPoller":
        return cls(
            order_id,
            fetch,
            interval=settings.poll_interval_seconds,
            max_interval=settings.poll_max_interval_seconds,
            max_failures=settings.poll_max_failures,
            **kwargs,
        )

    def next_delay(self) -> float:
        return min(self.interval * (2 ** self.consecutive_failures), self.max_interval)

    async def _poll(self) -> None:
        self.requests_made += 1
        try:
            data = await self.fetch(self.order_id)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self.consecutive_failures += 1
            logger.warning(
                "Status check for %s failed (%s/%s): %s",
                self.order_id,
                self.consecutive_failures,
                self.max_failures,
                exc,
            )
            if self.consecutive_failures >= self.max_failures and self.state is PollerState.POLLING:
                self.state = PollerState.ABANDONED
                self.message = ABANDONED_MESSAGE
            return

        self.consecutive_failures = 0
        self.last_data = data
        if self.state is not PollerState.POLLING:
            return
        outcome = classify_status(data)
        if outcome is not None:
            self.outcome = outcome
            self.state = PollerState.RESOLVED
            logger.info("Order %s resolved: %s", self.order_id, outcome.value)
            return
        if self.on_update is not None:
            self.on_update(data)

    async def run(self) -> PollerState:
        if self.state is not PollerState.IDLE:
            raise RuntimeError(f"poller already {self.state.value}")
        self.state = PollerState.POLLING
        loop = asyncio.get_running_loop()
        try:
            while self.state is PollerState.POLLING:
                if self._request is None or self._request.done():
                    self._request = asyncio.ensure_future(self._poll())
                else:
                    self.skipped_ticks += 1
                    logger.debug("Skipping tick for %s: previous request still in flight", self.order_id)
                started = loop.time()
                # Wake early when the request settles so a terminal status stops the loop promptly.
                await asyncio.wait({self._request}, timeout=self.next_delay())
                if self.state is not PollerState.POLLING:
                    break
                remaining = self.next_delay() - (loop.time() - started)
                if remaining > 0:
                    await asyncio.sleep(remaining)
                else:
                    await asyncio.sleep(0)
        finally:
            if self._request is not None and not self._request.done():
                self._request.cancel()
        return self.state

    def start(self) -> asyncio.Task:
        if self._runner is None:
            self._runner = asyncio.ensure_future(self.run())
        return self._runner

    async def wait(self) -> PollerState:
        if self._runner is None:
            raise RuntimeError("poller was not started")
        try:
            return await self._runner
        except asyncio.CancelledError:
            return self.state

    def stop(self) -> None:
        if self.state in (PollerState.IDLE, PollerState.POLLING):
            self.state = PollerState.CANCELLED
        if self._request is not None and not self._request.done():
            self._request.cancel()
        if self._runner is not None and not self._runner.done():
            self._runner.cancel()


class HttpStatusFetcher:
    """Fetches ``GET {base_url}/transactions/status/{order_id}``."""

    def __init__(self, base_url: str, *, timeout: float = 10, transport: httpx.AsyncBaseTransport | None = None):
        self._client = httpx.AsyncClient(base_url=base_url.rstrip("/"), timeout=timeout, transport=transport)

    async def __call__(self, order_id: str) -> dict:
        resp = await self._client.get(f"/transactions/status/{order_id}")
        resp.raise_for_status()
        body = resp.json()
        if not isinstance(body, dict) or not body.get("success") or not isinstance(body.get("data"), dict):
            raise StatusCheckError(f"Unexpected status response for {order_id}")
        return body["data"]

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "HttpStatusFetcher":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
