"""分享链接路由：创建需要登录，打开分享链接无需登录。"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from app.packages.drive.api.v1.schemas.files import LinkResponse, ShareBody
from app.packages.drive.core.dependencies import get_current_active_user, get_db
from app.packages.drive.models.user import User
from app.packages.drive.services.share_service import share_service

router = APIRouter(tags=["shares"])


@router.post("/shares", response_model=LinkResponse)
def create_share(
    payload: ShareBody,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    return share_service.create_share_link(
        db,
        storage_id=payload.storageId,
        key=payload.key,
        base_url=str(request.base_url),
        expires_in=payload.expiresIn,
        user_id=current_user.id,
    )


@router.get("/shared/{share_id}")
def open_shared(share_id: str, db: Session = Depends(get_db)):
    return share_service.open_shared(db, share_id=share_id)
