"""收藏路由。"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.packages.drive.api.v1.schemas.files import EntryResponse, StarBody, StarredListResponse
from app.packages.drive.core.dependencies import get_current_active_user, get_db
from app.packages.drive.models.user import User
from app.packages.drive.services.star_service import star_service

router = APIRouter(prefix="/stars", tags=["stars"])


@router.patch("", response_model=EntryResponse)
def toggle_star(
    payload: StarBody,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    return star_service.toggle_star(
        db,
        storage_id=payload.storageId,
        kind=payload.kind,
        key=payload.key,
        starred=payload.starred,
        user_id=current_user.id,
    )


@router.get("", response_model=StarredListResponse)
def list_starred(
    storage_id: int = Query(..., alias="storageId", ge=1),
    db: Session = Depends(get_db),
    _: User = Depends(get_current_active_user),
):
    return star_service.get_starred(db, storage_id=storage_id)
