"""
Async HTTP client for the storefront payment endpoints
"""
import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from printshop.client.poller import PaymentStatusPoller, PollResult

logger = logging.getLogger(__name__)


class StorefrontClient:
    """Client for the order service, used by the storefront checkout flow"""

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 10.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.transport = transport
        self.timeout = timeout

    def _http(self) -> httpx.AsyncClient:
        headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=self.timeout,
            transport=self.transport,
        )

    async def initiate_payment(self, order_id: int, phone: str) -> Dict[str, Any]:
        """
        Ask the service to send an STK push for an order

        Raises:
            httpx.HTTPStatusError: If the service rejects the request
        """
        async with self._http() as client:
            response = await client.post("/payments/initiate", json={"order_id": order_id, "phone": phone})
        response.raise_for_status()
        return response.json()

    async def get_payment_status(self, order_id: int) -> Dict[str, Any]:
        async with self._http() as client:
            response = await client.get(f"/payments/status/{order_id}")
        response.raise_for_status()
        return response.json()

    def payment_poller(
        self,
        order_id: int,
        interval: float = 3.0,
        max_attempts: int = 40,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> PaymentStatusPoller:
        """Poller bound to this order's status endpoint"""
        async def fetch_status() -> str:
            data = await self.get_payment_status(order_id)
            return data["payment_status"]

        return PaymentStatusPoller(fetch_status, interval=interval, max_attempts=max_attempts, sleep=sleep)

    async def poll_payment(
        self,
        order_id: int,
        interval: float = 3.0,
        max_attempts: int = 40,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> PollResult:
        """Poll until the order is paid or failed, or the attempt budget runs out"""
        result = await self.payment_poller(order_id, interval, max_attempts, sleep).run()
        logger.info(f"Payment polling for order {order_id} ended: {result.outcome.value} after {result.attempts} attempts")
        return result
