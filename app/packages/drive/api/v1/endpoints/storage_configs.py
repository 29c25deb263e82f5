"""存储源配置路由，全部需要登录。"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Path
from sqlalchemy.orm import Session

from app.packages.drive.api.v1.schemas.storage import (
    StorageConfigCreate,
    StorageConfigListResponse,
    StorageConfigMutationResponse,
    StorageConfigUpdate,
    StorageTestResponse,
)
from app.packages.drive.core.dependencies import get_current_active_user, get_db
from app.packages.drive.models.user import User
from app.packages.drive.services.storage_service import storage_service

router = APIRouter(
    prefix="/storage-configs",
    tags=["storage-configs"],
    dependencies=[Depends(get_current_active_user)],
)

ConfigId = Path(..., ge=1, description="存储源 ID")


@router.get("", response_model=StorageConfigListResponse)
def list_configs(db: Session = Depends(get_db)):
    return storage_service.list_configs(db)


@router.post("/test", response_model=StorageTestResponse)
def test_connection(payload: StorageConfigCreate):
    """按提交的参数探测一次连接，不落库。"""
    return storage_service.test_connection(payload.model_dump())


@router.get("/{config_id}", response_model=StorageConfigMutationResponse)
def get_config(config_id: int = ConfigId, db: Session = Depends(get_db)):
    return storage_service.get_config(db, id=config_id)


@router.post("", response_model=StorageConfigMutationResponse)
def create_config(
    payload: StorageConfigCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    return storage_service.create_config(db, payload.model_dump(), user_id=current_user.id)


@router.put("/{config_id}", response_model=StorageConfigMutationResponse)
def update_config(payload: StorageConfigUpdate, config_id: int = ConfigId, db: Session = Depends(get_db)):
    return storage_service.update_config(db, id=config_id, payload=payload.model_dump(exclude_unset=True))


@router.delete("/{config_id}", response_model=StorageConfigMutationResponse)
def delete_config(config_id: int = ConfigId, db: Session = Depends(get_db)):
    return storage_service.delete_config(db, id=config_id)
