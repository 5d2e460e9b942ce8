"""
Domain exceptions for the order and payment flow
"""


class StorefrontError(Exception):
    """Base exception for the order service"""
    status_code = 500


class ValidationError(StorefrontError):
    """Bad input that the caller can correct"""
    status_code = 400


class PaymentStateError(ValidationError):
    """Requested payment transition is not allowed from the current state"""
    pass


class AuthenticationError(StorefrontError):
    """Missing or invalid credentials"""
    status_code = 401


class AuthorizationError(StorefrontError):
    """Role or ownership mismatch"""
    status_code = 403


class NotFoundError(StorefrontError):
    """Requested record does not exist"""
    status_code = 404


class StockError(StorefrontError):
    """Insufficient inventory; the order was not placed"""
    status_code = 409


class ConfigurationError(StorefrontError):
    """Required configuration is missing"""
    status_code = 503


class GatewayError(StorefrontError):
    """Base exception for M-Pesa gateway failures"""
    status_code = 502


class GatewayAuthError(GatewayError):
    """Access token could not be obtained"""
    pass


class GatewayRequestError(GatewayError):
    """Gateway rejected the request or could not be reached"""
    pass


class GatewayCallbackParseError(GatewayError):
    """Inbound callback payload does not have the expected shape"""
    pass
