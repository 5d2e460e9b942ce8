import asyncio
import base64
import json
from datetime import datetime
from decimal import Decimal

import httpx
import pytest

from printshop.config import GatewaySettings
from printshop.exceptions import GatewayAuthError, GatewayRequestError, ValidationError
from printshop.services.mpesa_client import (
    CallbackFailure,
    CallbackSuccess,
    CallbackUnparseable,
    MpesaClient,
    QueryOutcome,
    classify_query_result,
    format_phone_number,
    gateway_amount,
    generate_password,
    parse_callback,
)

FIXED_NOW = datetime(2024, 1, 15, 10, 30, 0)


@pytest.fixture
def gateway_settings():
    return GatewaySettings(
        CONSUMER_KEY="key",
        CONSUMER_SECRET="secret",
        PASSKEY="passkey",
        SHORTCODE="174379",
        CALLBACK_URL="https://shop.test/payments/callback",
        BASE_URL="https://gateway.test/",
    )


def make_client(gateway_settings, handler):
    return MpesaClient(gateway_settings, transport=httpx.MockTransport(handler), clock=lambda: FIXED_NOW)


def token_response():
    return httpx.Response(200, json={"access_token": "tok-123", "expires_in": "3599"})


@pytest.mark.parametrize("raw, expected", [
    ("0706276584", "254706276584"),
    ("0706 276 584", "254706276584"),
    ("+254706276584", "254706276584"),
    ("254706276584", "254706276584"),
    ("706276584", "254706276584"),
    ("0110123456", "254110123456"),
    ("110123456", "254110123456"),
    ("+15551234567", "15551234567"),
    (" +44 7946 001812", "447946001812"),
    (None, ""),
])
def test_format_phone_number(raw, expected):
    assert format_phone_number(raw) == expected


@pytest.mark.parametrize("raw", ["0706276584", "+254 706-276-584", "110123456", "44 20 7946 0018"])
def test_format_phone_number_is_idempotent(raw):
    once = format_phone_number(raw)
    assert format_phone_number(once) == once


@pytest.mark.parametrize("amount, expected", [
    (Decimal("1500.50"), 1501),
    (Decimal("1500.00"), 1500),
    ("0.40", 1),
    (99.01, 100),
])
def test_gateway_amount_rounds_up(amount, expected):
    assert gateway_amount(amount) == expected


@pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-5"), "abc"])
def test_gateway_amount_rejects_non_positive(amount):
    with pytest.raises(ValidationError):
        gateway_amount(amount)


def test_generate_password():
    password, timestamp = generate_password("174379", "passkey", FIXED_NOW)
    assert timestamp == "20240115103000"
    assert base64.b64decode(password).decode() == "174379passkey20240115103000"


def test_parse_callback_success(callback_payload):
    result = parse_callback(callback_payload("ws_CO_1", receipt="QGR7XYZ123"))
    assert isinstance(result, CallbackSuccess)
    assert result.success
    assert result.checkout_ref == "ws_CO_1"
    assert result.receipt_ref == "QGR7XYZ123"
    assert result.amount == 1501
    assert result.phone_number == 254706276584


def test_parse_callback_accepts_string_zero(callback_payload):
    payload = callback_payload("ws_CO_1")
    payload["Body"]["stkCallback"]["ResultCode"] = "0"
    assert isinstance(parse_callback(payload), CallbackSuccess)


def test_parse_callback_failure(callback_payload):
    result = parse_callback(callback_payload("ws_CO_1", result_code=1032))
    assert isinstance(result, CallbackFailure)
    assert not result.success
    assert result.result_code == 1032
    assert result.result_desc == "Request cancelled by user"


@pytest.mark.parametrize("payload", [
    None,
    "not a dict",
    {},
    {"Body": {}},
    {"Body": {"stkCallback": {"ResultCode": 0}}},
    {"Body": {"stkCallback": {"CheckoutRequestID": "ws_CO_1"}}},
])
def test_parse_callback_malformed(payload):
    result = parse_callback(payload)
    assert isinstance(result, CallbackUnparseable)
    assert "Invalid callback data" in result.reason


def test_parse_callback_success_without_metadata():
    payload = {"Body": {"stkCallback": {"CheckoutRequestID": "ws_CO_1", "ResultCode": 0}}}
    result = parse_callback(payload)
    assert isinstance(result, CallbackSuccess)
    assert result.receipt_ref is None


@pytest.mark.parametrize("data, outcome", [
    ({"ResultCode": "0", "ResultDesc": "The service request is processed successfully."}, QueryOutcome.SUCCESS),
    ({"ResultCode": 0}, QueryOutcome.SUCCESS),
    ({"ResultCode": "1", "ResultDesc": "The balance is insufficient for the transaction."}, QueryOutcome.FAILURE),
    ({"ResultCode": "1032"}, QueryOutcome.FAILURE),
    ({"errorCode": "500.001.1001", "errorMessage": "The transaction is being processed"}, QueryOutcome.PROCESSING),
    ({}, QueryOutcome.PROCESSING),
])
def test_classify_query_result(data, outcome):
    assert classify_query_result(data).outcome is outcome


def test_classify_query_failure_keeps_description():
    result = classify_query_result({"ResultCode": "1", "ResultDesc": "The balance is insufficient for the transaction."})
    assert result.result_desc == "The balance is insufficient for the transaction."


def test_get_access_token_uses_basic_auth(gateway_settings):
    seen = {}

    def handler(request):
        seen["path"] = request.url.path
        seen["auth"] = request.headers["Authorization"]
        seen["grant"] = request.url.params["grant_type"]
        return token_response()

    client = make_client(gateway_settings, handler)
    assert asyncio.run(client.get_access_token()) == "tok-123"
    assert seen["path"] == "/oauth/v1/generate"
    assert seen["grant"] == "client_credentials"
    assert seen["auth"] == "Basic " + base64.b64encode(b"key:secret").decode()


def test_get_access_token_rejected(gateway_settings):
    client = make_client(gateway_settings, lambda request: httpx.Response(400, text="Bad credentials"))
    with pytest.raises(GatewayAuthError):
        asyncio.run(client.get_access_token())


def test_get_access_token_unreachable(gateway_settings):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = make_client(gateway_settings, handler)
    with pytest.raises(GatewayAuthError):
        asyncio.run(client.get_access_token())


def test_initiate_stk_push_payload(gateway_settings):
    sent = {}

    def handler(request):
        if request.url.path == "/oauth/v1/generate":
            return token_response()
        sent["path"] = request.url.path
        sent["auth"] = request.headers["Authorization"]
        sent["body"] = json.loads(request.content)
        return httpx.Response(200, json={
            "MerchantRequestID": "29115-3462076-1",
            "CheckoutRequestID": "ws_CO_191220191020363925",
            "ResponseCode": "0",
            "ResponseDescription": "Success. Request accepted for processing",
        })

    client = make_client(gateway_settings, handler)
    result = asyncio.run(client.initiate_stk_push("0706 276 584", Decimal("1500.50"), 42))

    assert result.checkout_ref == "ws_CO_191220191020363925"
    assert result.merchant_ref == "29115-3462076-1"
    assert sent["path"] == "/mpesa/stkpush/v1/processrequest"
    assert sent["auth"] == "Bearer tok-123"

    body = sent["body"]
    assert body["Amount"] == 1501
    assert body["PartyA"] == body["PhoneNumber"] == "254706276584"
    assert body["PartyB"] == body["BusinessShortCode"] == "174379"
    assert body["Timestamp"] == "20240115103000"
    assert base64.b64decode(body["Password"]).decode() == "174379passkey20240115103000"
    assert body["TransactionType"] == "CustomerPayBillOnline"
    assert body["CallBackURL"] == "https://shop.test/payments/callback"
    assert body["AccountReference"] == "PoshPrint-42"
    assert body["TransactionDesc"] == "Payment for Order #42"


def test_initiate_stk_push_rejected(gateway_settings):
    def handler(request):
        if request.url.path == "/oauth/v1/generate":
            return token_response()
        return httpx.Response(400, json={"requestId": "1", "errorCode": "400.002.02", "errorMessage": "Bad Request - Invalid PhoneNumber"})

    client = make_client(gateway_settings, handler)
    with pytest.raises(GatewayRequestError, match="Invalid PhoneNumber"):
        asyncio.run(client.initiate_stk_push("0706276584", 100, 1))


def test_initiate_stk_push_is_not_retried(gateway_settings):
    attempts = []

    def handler(request):
        if request.url.path == "/oauth/v1/generate":
            return token_response()
        attempts.append(request)
        raise httpx.ReadTimeout("timed out", request=request)

    client = make_client(gateway_settings, handler)
    with pytest.raises(GatewayRequestError):
        asyncio.run(client.initiate_stk_push("0706276584", 100, 1))
    assert len(attempts) == 1


def test_initiate_stk_push_requires_valid_amount(gateway_settings):
    client = make_client(gateway_settings, lambda request: token_response())
    with pytest.raises(ValidationError):
        asyncio.run(client.initiate_stk_push("0706276584", Decimal("0"), 1))


def test_query_stk_status(gateway_settings):
    sent = {}

    def handler(request):
        if request.url.path == "/oauth/v1/generate":
            return token_response()
        sent["path"] = request.url.path
        sent["body"] = json.loads(request.content)
        return httpx.Response(200, json={"ResultCode": "1", "ResultDesc": "The balance is insufficient for the transaction."})

    client = make_client(gateway_settings, handler)
    data = asyncio.run(client.query_stk_status("ws_CO_1"))

    assert data["ResultCode"] == "1"
    assert sent["path"] == "/mpesa/stkpushquery/v1/query"
    assert sent["body"]["CheckoutRequestID"] == "ws_CO_1"
    assert sent["body"]["BusinessShortCode"] == "174379"


def test_query_stk_status_non_json(gateway_settings):
    def handler(request):
        if request.url.path == "/oauth/v1/generate":
            return token_response()
        return httpx.Response(503, text="<html>Service Unavailable</html>")

    client = make_client(gateway_settings, handler)
    with pytest.raises(GatewayRequestError):
        asyncio.run(client.query_stk_status("ws_CO_1"))


def test_production_base_url():
    settings = GatewaySettings(
        CONSUMER_KEY="k", CONSUMER_SECRET="s", PASSKEY="p", SHORTCODE="1",
        CALLBACK_URL="https://shop.test/cb", ENV="production", BASE_URL=None,
    )
    assert settings.api_base_url == "https://api.safaricom.co.ke"
