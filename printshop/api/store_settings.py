"""
Storefront settings endpoints
"""
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends
from sqlalchemy.orm import Session

from printshop.api.dependencies import require_admin
from printshop.database import get_db
from printshop.repositories.user_repository import StoreSettingsRepository
from printshop.schemas.user import StoreSettingsResponse
from printshop.services.identity import CurrentUser

router = APIRouter(prefix="/settings", tags=["settings"])


@router.get("", response_model=StoreSettingsResponse, summary="Get store settings")
def get_settings(db: Session = Depends(get_db)):
    return StoreSettingsResponse(settings=StoreSettingsRepository(db).get())


@router.put("", response_model=StoreSettingsResponse, summary="Update store settings")
def update_settings(
    changes: Dict[str, Any] = Body(...),
    user: CurrentUser = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """
    Merge the given keys into the store settings (admin only)
    """
    return StoreSettingsResponse(settings=StoreSettingsRepository(db).merge(changes))
