"""
Shared FastAPI dependencies: identity, role checks and service wiring
"""
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from printshop.api.errors import http_error
from printshop.database import get_db
from printshop.exceptions import StorefrontError
from printshop.publishers.event_publisher import EventPublisher
from printshop.repositories.user_repository import UserRepository
from printshop.services.identity import CurrentUser
from printshop.services.mpesa_client import MpesaClient
from printshop.services.order_service import OrderService
from printshop.services.payment_service import PaymentService


security = HTTPBearer(auto_error=False)


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> CurrentUser:
    """Verify the bearer token with the identity provider and load the caller's role"""
    if credentials is None or not credentials.credentials:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="No token provided")

    verifier = getattr(request.app.state, "identity_verifier", None)
    if verifier is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Identity verifier not configured")

    try:
        identity = await verifier.verify(credentials.credentials)
    except StorefrontError as e:
        raise http_error(e)

    record = UserRepository(db).get_by_identity(identity.id)
    name = identity.name or (identity.email.split("@")[0] if identity.email else "User")
    return CurrentUser(
        id=identity.id,
        email=identity.email,
        name=name,
        role=record.role if record else "customer",
    )


def require_admin(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    """Reject callers without the admin role"""
    if not user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return user


def get_event_publisher(request: Request) -> EventPublisher:
    publisher = getattr(request.app.state, "event_publisher", None)
    return publisher or EventPublisher()


def get_gateway(request: Request) -> Optional[MpesaClient]:
    """Gateway client built at startup; None defers to PaymentService"""
    return getattr(request.app.state, "gateway", None)


def get_order_service(
    db: Session = Depends(get_db),
    publisher: EventPublisher = Depends(get_event_publisher),
) -> OrderService:
    """Dependency to get OrderService instance"""
    return OrderService(db, event_publisher=publisher)


def get_payment_service(
    db: Session = Depends(get_db),
    publisher: EventPublisher = Depends(get_event_publisher),
    gateway: Optional[MpesaClient] = Depends(get_gateway),
) -> PaymentService:
    """Dependency to get PaymentService instance"""
    return PaymentService(db, gateway=gateway, event_publisher=publisher)
