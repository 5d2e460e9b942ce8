"""
Storefront client and payment status poller
"""
from printshop.client.poller import PaymentStatusPoller, PollOutcome, PollResult
from printshop.client.storefront_client import StorefrontClient

__all__ = ["PaymentStatusPoller", "PollOutcome", "PollResult", "StorefrontClient"]
