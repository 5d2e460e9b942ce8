"""
HTTP Client for the M-Pesa Daraja API (Lipa Na M-Pesa Online / STK push)
"""
import base64
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, ROUND_CEILING, InvalidOperation
from enum import Enum
from typing import Any, Callable, Dict, Optional, Union

import httpx
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from printshop.config import GatewaySettings, settings
from printshop.exceptions import (
    GatewayAuthError,
    GatewayCallbackParseError,
    GatewayRequestError,
    ValidationError,
)

logger = logging.getLogger(__name__)

COUNTRY_CODE = "254"
# Safaricom subscriber numbers start with 7 or 1 once the trunk 0 is dropped
MOBILE_PREFIXES = ("7", "1")

_NON_DIGITS = re.compile(r"\D")

_transient = retry(
    stop=stop_after_attempt(settings.MAX_RETRIES),
    wait=wait_exponential(multiplier=settings.RETRY_DELAY, min=1, max=10),
    retry=retry_if_exception_type((httpx.TimeoutException, httpx.ConnectError)),
    reraise=True
)


def format_phone_number(raw: Any, country_code: str = COUNTRY_CODE) -> str:
    """
    Normalize a phone number to the 2547XXXXXXXX form the gateway expects

    Never raises. Examples:
        "0706 276 584"  -> "254706276584"
        "+254706276584" -> "254706276584"
        "706276584"     -> "254706276584"
        "+15551234567"  -> "15551234567"
    """
    if raw is None:
        return ""
    text = str(raw).strip()
    digits = _NON_DIGITS.sub("", text)

    # Already international; local prefix rules do not apply
    if text.startswith("+"):
        return digits
    if digits.startswith("0"):
        return country_code + digits[1:]
    if digits.startswith(MOBILE_PREFIXES):
        return country_code + digits
    return digits


def generate_password(shortcode: str, passkey: str, now: datetime) -> tuple:
    """Return (password, timestamp) for a signed STK request"""
    timestamp = now.strftime("%Y%m%d%H%M%S")
    password = base64.b64encode(f"{shortcode}{passkey}{timestamp}".encode("utf-8")).decode("ascii")
    return password, timestamp


def gateway_amount(amount: Union[Decimal, float, int, str]) -> int:
    """Round up to a whole currency unit; the gateway rejects fractions"""
    try:
        value = Decimal(str(amount))
    except InvalidOperation:
        raise ValidationError(f"Invalid amount: {amount!r}")
    whole = int(value.to_integral_value(rounding=ROUND_CEILING))
    if whole < 1:
        raise ValidationError("Amount must be at least 1")
    return whole


@dataclass(frozen=True)
class StkPushResult:
    checkout_ref: str
    merchant_ref: Optional[str]
    description: Optional[str]


# ---------- callback parse results ----------

@dataclass(frozen=True)
class CallbackSuccess:
    result_code: int
    result_desc: Optional[str]
    merchant_ref: Optional[str]
    checkout_ref: str
    amount: Optional[Any] = None
    receipt_ref: Optional[str] = None
    transaction_date: Optional[Any] = None
    phone_number: Optional[Any] = None
    success: bool = True


@dataclass(frozen=True)
class CallbackFailure:
    result_code: Any
    result_desc: Optional[str]
    merchant_ref: Optional[str]
    checkout_ref: str
    success: bool = False


@dataclass(frozen=True)
class CallbackUnparseable:
    error: GatewayCallbackParseError
    success: bool = False

    @property
    def reason(self) -> str:
        return str(self.error)


CallbackResult = Union[CallbackSuccess, CallbackFailure, CallbackUnparseable]


def _is_zero(code: Any) -> bool:
    return str(code).strip() == "0"


def parse_callback(payload: Any) -> CallbackResult:
    """
    Extract the result of an STK push from the gateway's callback body

    Expected shape:
        {"Body": {"stkCallback": {"ResultCode", "ResultDesc", "MerchantRequestID",
                                  "CheckoutRequestID", "CallbackMetadata": {"Item": [...]}}}}

    Returns a CallbackUnparseable instead of raising when the shape is wrong.
    """
    body = payload.get("Body") if isinstance(payload, dict) else None
    stk = body.get("stkCallback") if isinstance(body, dict) else None
    if not isinstance(stk, dict):
        return CallbackUnparseable(GatewayCallbackParseError("Invalid callback data: missing Body.stkCallback"))

    checkout_ref = stk.get("CheckoutRequestID")
    result_code = stk.get("ResultCode")
    if not checkout_ref or result_code is None:
        return CallbackUnparseable(
            GatewayCallbackParseError("Invalid callback data: missing CheckoutRequestID or ResultCode")
        )

    result_desc = stk.get("ResultDesc")
    merchant_ref = stk.get("MerchantRequestID")

    if not _is_zero(result_code):
        return CallbackFailure(
            result_code=result_code,
            result_desc=result_desc,
            merchant_ref=merchant_ref,
            checkout_ref=str(checkout_ref),
        )

    metadata: Dict[str, Any] = {}
    meta_block = stk.get("CallbackMetadata")
    items = meta_block.get("Item") if isinstance(meta_block, dict) else None
    if isinstance(items, list):
        for item in items:
            if isinstance(item, dict) and "Name" in item:
                metadata[item["Name"]] = item.get("Value")

    receipt = metadata.get("MpesaReceiptNumber")
    return CallbackSuccess(
        result_code=0,
        result_desc=result_desc,
        merchant_ref=merchant_ref,
        checkout_ref=str(checkout_ref),
        amount=metadata.get("Amount"),
        receipt_ref=str(receipt) if receipt is not None else None,
        transaction_date=metadata.get("TransactionDate"),
        phone_number=metadata.get("PhoneNumber"),
    )


# ---------- status query interpretation ----------

class QueryOutcome(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    PROCESSING = "processing"


@dataclass(frozen=True)
class QueryResult:
    outcome: QueryOutcome
    result_code: Any
    result_desc: Optional[str]


def classify_query_result(data: Dict[str, Any]) -> QueryResult:
    """Absent ResultCode means the push is still being processed"""
    code = data.get("ResultCode")
    desc = data.get("ResultDesc") or data.get("errorMessage")
    if code is None or str(code).strip() == "":
        return QueryResult(QueryOutcome.PROCESSING, None, desc)
    if _is_zero(code):
        return QueryResult(QueryOutcome.SUCCESS, code, desc)
    return QueryResult(QueryOutcome.FAILURE, code, desc or f"Payment failed (code {code})")


class MpesaClient:
    """Client for communicating with the M-Pesa gateway"""

    def __init__(
        self,
        gateway_settings: GatewaySettings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: Optional[float] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.config = gateway_settings
        self.base_url = gateway_settings.api_base_url
        self.timeout = timeout if timeout is not None else settings.GATEWAY_TIMEOUT
        self.transport = transport
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def _http(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout, transport=self.transport)

    @_transient
    async def _fetch_token(self) -> httpx.Response:
        raw = f"{self.config.CONSUMER_KEY}:{self.config.CONSUMER_SECRET}".encode("utf-8")
        auth = base64.b64encode(raw).decode("ascii")
        async with self._http() as client:
            return await client.get(
                "/oauth/v1/generate",
                params={"grant_type": "client_credentials"},
                headers={"Authorization": f"Basic {auth}"},
            )

    async def get_access_token(self) -> str:
        """
        Exchange consumer key/secret for a bearer token

        Raises:
            GatewayAuthError: On transport failure or non-2xx response
        """
        try:
            response = await self._fetch_token()
        except httpx.HTTPError as e:
            raise GatewayAuthError(f"Failed to get M-Pesa access token: {e}") from e

        if not response.is_success:
            raise GatewayAuthError(f"Failed to get M-Pesa access token: {response.text}")

        try:
            token = response.json().get("access_token")
        except ValueError:
            token = None
        if not token:
            raise GatewayAuthError("Failed to get M-Pesa access token: no access_token in response")
        return token

    def _signature(self) -> Dict[str, str]:
        password, timestamp = generate_password(self.config.SHORTCODE, self.config.PASSKEY, self.clock())
        return {
            "BusinessShortCode": self.config.SHORTCODE,
            "Password": password,
            "Timestamp": timestamp,
        }

    async def initiate_stk_push(self, phone: str, amount, order_ref) -> StkPushResult:
        """
        Send a payment prompt to the customer's phone

        Args:
            phone: Customer phone number in any local format
            amount: Order total; rounded up to a whole unit
            order_ref: Order reference shown to the payer

        Returns:
            StkPushResult with the CheckoutRequestID used to match the callback

        Raises:
            GatewayAuthError: If no token could be obtained
            GatewayRequestError: If the gateway rejects the push
        """
        formatted_phone = format_phone_number(phone)
        whole_amount = gateway_amount(amount)
        token = await self.get_access_token()

        payload = {
            **self._signature(),
            "TransactionType": self.config.TRANSACTION_TYPE,
            "Amount": whole_amount,
            "PartyA": formatted_phone,
            "PartyB": self.config.SHORTCODE,
            "PhoneNumber": formatted_phone,
            "CallBackURL": self.config.CALLBACK_URL,
            "AccountReference": f"{self.config.ACCOUNT_PREFIX}-{order_ref}",
            "TransactionDesc": f"Payment for Order #{order_ref}",
        }

        # Not retried: a second submission sends a second prompt to the payer
        try:
            async with self._http() as client:
                response = await client.post(
                    "/mpesa/stkpush/v1/processrequest",
                    json=payload,
                    headers={"Authorization": f"Bearer {token}"},
                )
        except httpx.HTTPError as e:
            raise GatewayRequestError(f"STK Push request failed: {e}") from e

        data = self._json(response)
        if str(data.get("ResponseCode")) != "0":
            raise GatewayRequestError(
                data.get("errorMessage") or data.get("ResponseDescription") or "STK Push failed"
            )

        checkout_ref = data.get("CheckoutRequestID")
        if not checkout_ref:
            raise GatewayRequestError("STK Push response did not include a CheckoutRequestID")

        logger.info(f"STK push accepted for order {order_ref}: checkout_ref={checkout_ref}")
        return StkPushResult(
            checkout_ref=checkout_ref,
            merchant_ref=data.get("MerchantRequestID"),
            description=data.get("ResponseDescription"),
        )

    @_transient
    async def _post_query(self, token: str, checkout_ref: str) -> httpx.Response:
        payload = {**self._signature(), "CheckoutRequestID": checkout_ref}
        async with self._http() as client:
            return await client.post(
                "/mpesa/stkpushquery/v1/query",
                json=payload,
                headers={"Authorization": f"Bearer {token}"},
            )

    async def query_stk_status(self, checkout_ref: str) -> Dict[str, Any]:
        """
        Ask the gateway for the current result of an earlier push

        Returns the raw response body. A missing ResultCode means the
        push is still being processed.

        Raises:
            GatewayAuthError: If no token could be obtained
            GatewayRequestError: On transport failure or a non-JSON body
        """
        token = await self.get_access_token()
        try:
            response = await self._post_query(token, checkout_ref)
        except httpx.HTTPError as e:
            raise GatewayRequestError(f"STK status query failed: {e}") from e
        return self._json(response)

    @staticmethod
    def _json(response: httpx.Response) -> Dict[str, Any]:
        try:
            data = response.json()
        except ValueError:
            raise GatewayRequestError(
                f"Unexpected gateway response (HTTP {response.status_code}): {response.text[:200]}"
            )
        if not isinstance(data, dict):
            raise GatewayRequestError(f"Unexpected gateway response (HTTP {response.status_code})")
        return data
