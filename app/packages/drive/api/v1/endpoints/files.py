"""文件与文件夹操作路由。

变更类接口（上传/新建/删除）在服务层输出 INFO 日志；查询类接口保持轻量。
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, File, Query, Request, UploadFile
from sqlalchemy.orm import Session

from app.packages.drive.api.v1.schemas.files import (
    FilesListResponse,
    FilesMutationResponse,
    EntryResponse,
    FolderCreateBody,
    LinkResponse,
    UploadResponse,
)
from app.packages.drive.core.dependencies import get_current_active_user, get_db
from app.packages.drive.models.user import User
from app.packages.drive.services.file_service import file_service

router = APIRouter(tags=["files"])


@router.get("/files", response_model=FilesListResponse)
def list_children(
    storage_id: int = Query(..., alias="storageId", ge=1),
    path: Optional[str] = Query("/"),
    db: Session = Depends(get_db),
    _: User = Depends(get_current_active_user),
):
    return file_service.list_children(db, storage_id=storage_id, path=path)


@router.post("/files", response_model=UploadResponse)
async def upload_files(
    storage_id: int = Query(..., alias="storageId", ge=1),
    path: Optional[str] = Query("/"),
    files: list[UploadFile] = File(...),
    db: Session = Depends(get_db),
    _: User = Depends(get_current_active_user),
):
    materials = []
    for up in files:
        materials.append((up.filename or "", await up.read(), up.content_type))
    return file_service.upload_files(db, storage_id=storage_id, path=path, files=materials)


@router.post("/folders", response_model=EntryResponse)
def create_folder(
    payload: FolderCreateBody,
    storage_id: int = Query(..., alias="storageId", ge=1),
    path: Optional[str] = Query("/"),
    db: Session = Depends(get_db),
    _: User = Depends(get_current_active_user),
):
    return file_service.create_directory(db, storage_id=storage_id, path=path, name=payload.name)


@router.delete("/files", response_model=FilesMutationResponse)
def delete_item(
    storage_id: int = Query(..., alias="storageId", ge=1),
    key: str = Query(..., min_length=1),
    db: Session = Depends(get_db),
    _: User = Depends(get_current_active_user),
):
    """删除文件；以 '/' 结尾的键按目录递归删除。"""
    return file_service.delete_item(db, storage_id=storage_id, key=key)


@router.get("/files/download")
def download_file(
    storage_id: int = Query(..., alias="storageId", ge=1),
    key: str = Query(..., min_length=1),
    db: Session = Depends(get_db),
    _: User = Depends(get_current_active_user),
):
    return file_service.download(db, storage_id=storage_id, key=key)


@router.get("/files/download-url", response_model=LinkResponse)
def create_download_url(
    request: Request,
    storage_id: int = Query(..., alias="storageId", ge=1),
    key: str = Query(..., min_length=1),
    db: Session = Depends(get_db),
    _: User = Depends(get_current_active_user),
):
    return file_service.create_download_link(db, storage_id=storage_id, key=key, base_url=str(request.base_url))


@router.get("/files/signed")
def download_signed(t: str = Query(..., min_length=1), db: Session = Depends(get_db)):
    """公开下载入口：凭临时签名令牌访问，无需登录。"""
    return file_service.download_signed(db, token=t)
