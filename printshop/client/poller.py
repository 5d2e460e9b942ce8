"""
Bounded polling of an order's payment status after an STK push
"""
import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional

import httpx

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = ("paid", "failed")


class PollOutcome(str, Enum):
    PAID = "paid"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class PollResult:
    outcome: PollOutcome
    payment_status: Optional[str]
    attempts: int

    @property
    def message(self) -> str:
        if self.outcome == PollOutcome.PAID:
            return "Payment received"
        if self.outcome == PollOutcome.FAILED:
            return "Payment failed or was cancelled"
        if self.outcome == PollOutcome.TIMED_OUT:
            return "Payment verification timed out. It may still complete; check your orders shortly."
        return "Stopped checking payment status"


def _is_transient(error: Exception) -> bool:
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code >= 500
    return isinstance(error, httpx.TransportError)


class PaymentStatusPoller:
    """
    Polls a status source until the payment is paid or failed

    Stops immediately on a terminal status; after max_attempts the
    result is TIMED_OUT, which is distinct from FAILED because the
    gateway may still settle the payment. Transport errors and 5xx
    responses count as an attempt and polling continues.

    Args:
        fetch_status: Coroutine function returning the current payment_status
        interval: Seconds between attempts
        max_attempts: Attempt budget (40 x 3s is about two minutes)
        sleep: Awaitable sleep, replaced in tests
    """

    def __init__(
        self,
        fetch_status: Callable[[], Awaitable[str]],
        interval: float = 3.0,
        max_attempts: int = 40,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if interval < 0:
            raise ValueError("interval must not be negative")
        self.fetch_status = fetch_status
        self.interval = interval
        self.max_attempts = max_attempts
        self.sleep = sleep
        self.attempts = 0
        self.last_status: Optional[str] = None
        self._cancelled = False
        self._task: Optional[asyncio.Task] = None

    def _result(self, outcome: PollOutcome) -> PollResult:
        return PollResult(outcome=outcome, payment_status=self.last_status, attempts=self.attempts)

    async def run(self) -> PollResult:
        try:
            while self.attempts < self.max_attempts:
                if self._cancelled:
                    return self._result(PollOutcome.CANCELLED)

                self.attempts += 1
                try:
                    status = await self.fetch_status()
                except httpx.HTTPError as e:
                    if not _is_transient(e):
                        raise
                    logger.warning(f"Payment status check {self.attempts}/{self.max_attempts} failed: {e}")
                else:
                    self.last_status = status
                    if status in TERMINAL_STATUSES:
                        return self._result(PollOutcome(status))

                if self.attempts < self.max_attempts:
                    await self.sleep(self.interval)
        except asyncio.CancelledError:
            if not self._cancelled:
                raise
            return self._result(PollOutcome.CANCELLED)

        if self._cancelled:
            return self._result(PollOutcome.CANCELLED)
        return self._result(PollOutcome.TIMED_OUT)

    def start(self) -> asyncio.Task:
        """Schedule run() on the running loop"""
        if self._task is None:
            self._task = asyncio.ensure_future(self.run())
        return self._task

    def cancel(self) -> None:
        """Stop polling; a started task finishes with CANCELLED"""
        self._cancelled = True
        if self._task is not None and not self._task.done():
            self._task.cancel()
