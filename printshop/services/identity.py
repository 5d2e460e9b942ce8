"""
Identity verification delegated to an external identity provider
"""
import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from printshop.config import settings
from printshop.exceptions import AuthenticationError, ConfigurationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    """Claims returned by the identity provider"""
    id: str
    email: Optional[str] = None
    name: Optional[str] = None


@dataclass(frozen=True)
class CurrentUser:
    """Authenticated caller with the role from the local users table"""
    id: str
    email: Optional[str]
    name: str
    role: str = "customer"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


class TokenIntrospectionVerifier:
    """Verifies bearer tokens by posting them to the provider's introspection URL"""

    def __init__(self, verify_url: Optional[str] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.verify_url = verify_url or settings.IDENTITY_VERIFY_URL
        self.transport = transport
        self.timeout = 5.0

    async def verify(self, token: str) -> Identity:
        """
        Resolve a bearer token to an identity

        Raises:
            ConfigurationError: If no introspection URL is configured
            AuthenticationError: If the provider rejects the token or is unreachable
        """
        if not self.verify_url:
            raise ConfigurationError("IDENTITY_VERIFY_URL is not configured")

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(self.verify_url, json={"token": token})
        except httpx.HTTPError as e:
            logger.warning(f"Identity provider unreachable: {e}")
            raise AuthenticationError("Invalid or expired token") from e

        if response.status_code != 200:
            raise AuthenticationError("Invalid or expired token")

        try:
            claims = response.json()
        except ValueError:
            raise AuthenticationError("Invalid or expired token")

        uid = claims.get("uid") or claims.get("sub") or claims.get("user_id")
        if not uid:
            raise AuthenticationError("Invalid or expired token")
        return Identity(id=str(uid), email=claims.get("email"), name=claims.get("name"))
