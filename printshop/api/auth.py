"""
Account endpoints: local user sync and admin bootstrap
"""
import hmac
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from printshop.api.dependencies import get_current_user
from printshop.config import settings
from printshop.database import get_db
from printshop.repositories.user_repository import UserRepository
from printshop.schemas.user import AdminSetup, UserResponse, UserSync
from printshop.services.identity import CurrentUser

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])


@router.post("/auth/sync", response_model=UserResponse, summary="Sync signed-in user")
def sync_user(
    body: UserSync,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Create the local record for a signed-in user, or refresh their name

    New users always start as customers.
    """
    record = UserRepository(db).upsert(user.id, user.email, body.name or user.name)
    return UserResponse(id=record.identity_id, email=record.email, name=record.name, role=record.role)


@router.get("/auth/me", response_model=UserResponse, summary="Current user")
def me(user: CurrentUser = Depends(get_current_user)):
    return UserResponse(id=user.id, email=user.email, name=user.name, role=user.role)


@router.post("/admin/setup", response_model=UserResponse, summary="Promote user to admin")
def setup_admin(body: AdminSetup, db: Session = Depends(get_db)):
    """
    Grant the admin role to a synced user

    Requires the shared ADMIN_SECRET; disabled when it is not set.
    """
    if not settings.ADMIN_SECRET:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Admin setup is disabled")

    if not hmac.compare_digest(body.secret.encode(), settings.ADMIN_SECRET.encode()):
        logger.warning(f"Rejected admin setup attempt for {body.identity_id}")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid admin secret")

    record = UserRepository(db).set_role(body.identity_id, "admin")
    if not record:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found; sign in first")

    logger.info(f"User {record.identity_id} promoted to admin")
    return UserResponse(id=record.identity_id, email=record.email, name=record.name, role=record.role)
