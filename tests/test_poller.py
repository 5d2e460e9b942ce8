import asyncio
import json

import httpx
import pytest

from printshop.client.poller import PaymentStatusPoller, PollOutcome
from printshop.client.storefront_client import StorefrontClient


class FakeSleep:
    def __init__(self):
        self.calls = []

    async def __call__(self, seconds):
        self.calls.append(seconds)


def status_source(*statuses):
    """Coroutine function returning the given statuses in order; exceptions are raised"""
    remaining = list(statuses)

    async def fetch():
        value = remaining.pop(0)
        if isinstance(value, Exception):
            raise value
        return value

    return fetch


def test_stops_on_paid():
    sleep = FakeSleep()
    poller = PaymentStatusPoller(status_source("pending", "pending", "paid"), interval=3.0, sleep=sleep)

    result = asyncio.run(poller.run())

    assert result.outcome is PollOutcome.PAID
    assert result.payment_status == "paid"
    assert result.attempts == 3
    assert sleep.calls == [3.0, 3.0]


def test_stops_on_failed():
    poller = PaymentStatusPoller(status_source("pending", "failed"), sleep=FakeSleep())
    result = asyncio.run(poller.run())

    assert result.outcome is PollOutcome.FAILED
    assert result.attempts == 2


def test_times_out_distinct_from_failed():
    sleep = FakeSleep()
    poller = PaymentStatusPoller(status_source(*["pending"] * 5), interval=3.0, max_attempts=5, sleep=sleep)

    result = asyncio.run(poller.run())

    assert result.outcome is PollOutcome.TIMED_OUT
    assert result.payment_status == "pending"
    assert result.attempts == 5
    # No sleep after the final attempt
    assert len(sleep.calls) == 4
    assert "may still complete" in result.message


def test_transport_errors_are_transient():
    request = httpx.Request("GET", "https://shop.test/payments/status/1")
    poller = PaymentStatusPoller(
        status_source(
            httpx.ConnectError("connection refused", request=request),
            httpx.HTTPStatusError("bad gateway", request=request, response=httpx.Response(502, request=request)),
            "paid",
        ),
        sleep=FakeSleep(),
    )

    result = asyncio.run(poller.run())

    assert result.outcome is PollOutcome.PAID
    assert result.attempts == 3


def test_transport_errors_count_against_budget():
    request = httpx.Request("GET", "https://shop.test/payments/status/1")
    errors = [httpx.ReadTimeout("timed out", request=request) for _ in range(3)]
    poller = PaymentStatusPoller(status_source(*errors), max_attempts=3, sleep=FakeSleep())

    result = asyncio.run(poller.run())

    assert result.outcome is PollOutcome.TIMED_OUT
    assert result.payment_status is None


def test_client_errors_are_not_retried():
    request = httpx.Request("GET", "https://shop.test/payments/status/1")
    forbidden = httpx.HTTPStatusError("forbidden", request=request, response=httpx.Response(403, request=request))
    poller = PaymentStatusPoller(status_source(forbidden, "paid"), sleep=FakeSleep())

    with pytest.raises(httpx.HTTPStatusError):
        asyncio.run(poller.run())


def test_cancel_started_poller():
    async def scenario():
        fetched = asyncio.Event()

        async def fetch():
            fetched.set()
            return "pending"

        poller = PaymentStatusPoller(fetch, interval=60.0, max_attempts=40)
        task = poller.start()
        await fetched.wait()
        poller.cancel()
        return await task

    result = asyncio.run(scenario())

    assert result.outcome is PollOutcome.CANCELLED
    assert result.attempts == 1


def test_cancel_before_first_attempt():
    poller = PaymentStatusPoller(status_source("paid"), sleep=FakeSleep())
    poller.cancel()

    result = asyncio.run(poller.run())

    assert result.outcome is PollOutcome.CANCELLED
    assert result.attempts == 0


@pytest.mark.parametrize("kwargs", [{"max_attempts": 0}, {"interval": -1}])
def test_rejects_bad_parameters(kwargs):
    with pytest.raises(ValueError):
        PaymentStatusPoller(status_source(), **kwargs)


def test_storefront_client_polls_status_endpoint():
    statuses = iter(["pending", "pending", "paid"])
    seen = []

    def handler(request):
        seen.append((request.method, request.url.path, request.headers.get("Authorization")))
        if request.url.path == "/payments/initiate":
            body = json.loads(request.content)
            return httpx.Response(200, json={
                "message": "STK Push sent. Check your phone to complete payment.",
                "order_id": body["order_id"],
                "checkout_ref": "ws_CO_00001",
                "payment_status": "pending",
            })
        return httpx.Response(200, json={"order_id": 7, "payment_status": next(statuses)})

    client = StorefrontClient("https://shop.test/", token="tok", transport=httpx.MockTransport(handler))

    async def scenario():
        started = await client.initiate_payment(7, "0706276584")
        result = await client.poll_payment(7, sleep=FakeSleep())
        return started, result

    started, result = asyncio.run(scenario())

    assert started["checkout_ref"] == "ws_CO_00001"
    assert result.outcome is PollOutcome.PAID
    assert result.attempts == 3
    assert seen[0] == ("POST", "/payments/initiate", "Bearer tok")
    assert seen[1:] == [("GET", "/payments/status/7", "Bearer tok")] * 3


def test_storefront_client_surfaces_rejection():
    def handler(request):
        return httpx.Response(400, json={"detail": "Order is already paid"})

    client = StorefrontClient("https://shop.test", transport=httpx.MockTransport(handler))

    with pytest.raises(httpx.HTTPStatusError) as exc_info:
        asyncio.run(client.initiate_payment(7, "0706276584"))
    assert exc_info.value.response.json()["detail"] == "Order is already paid"
