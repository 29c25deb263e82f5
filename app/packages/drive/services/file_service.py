"""文件操作服务：基于存储源配置执行列举、上传、新建文件夹、删除与下载。"""

from __future__ import annotations

import mimetypes
from typing import Any, Dict, List, Optional, Tuple

from fastapi.responses import Response
from sqlalchemy.orm import Session

from app.packages.drive.core.config import get_settings
from app.packages.drive.core.constants import HTTP_STATUS_OK, PATH_DELIMITER
from app.packages.drive.core.exceptions import AppException, NotFoundError, ValidationError
from app.packages.drive.core.logger import logger
from app.packages.drive.core.responses import create_response
from app.packages.drive.core.security import create_download_token, read_download_token
from app.packages.drive.core.timezone import expires_after, to_iso
from app.packages.drive.crud.share_link import share_link_crud
from app.packages.drive.crud.starred_item import starred_item_crud
from app.packages.drive.crud.storage_config import storage_config_crud
from app.packages.drive.models.storage import StorageConfig
from app.packages.drive.services.namespace import NamespaceMaterializer
from app.packages.drive.services.storage_backends import CONNECTION_FIELDS, StorageBackend, build_backend
from app.packages.drive.utils.path_utils import is_directory_key, normalize_key

# (文件名, 内容, content-type)
UploadItem = Tuple[str, bytes, Optional[str]]


def backend_for_config(cfg: StorageConfig) -> StorageBackend:
    fields = {name: getattr(cfg, name) for name in CONNECTION_FIELDS}
    return build_backend(type=cfg.type, memory_key=cfg.id, **fields)


class FileService:
    def _get_backend(self, db: Session, *, storage_id: int) -> StorageBackend:
        cfg = storage_config_crud.get(db, storage_id)
        if cfg is None:
            raise NotFoundError("存储源不存在或已删除")
        return backend_for_config(cfg)

    def get_namespace(self, db: Session, *, storage_id: int) -> NamespaceMaterializer:
        return NamespaceMaterializer(self._get_backend(db, storage_id=storage_id))

    # ----------------------------
    # 查询
    # ----------------------------
    def list_children(self, db: Session, *, storage_id: int, path: Optional[str] = PATH_DELIMITER) -> Dict[str, Any]:
        listing = self.get_namespace(db, storage_id=storage_id).list_children(path)
        starred = starred_item_crud.starred_keys(
            db, storage_id=storage_id, keys=[entry.key for entry in listing.entries]
        )
        for entry in listing.entries:
            entry.starred = entry.key in starred
        return create_response("获取文件列表成功", listing.to_dict(), HTTP_STATUS_OK)

    # ----------------------------
    # 变更
    # ----------------------------
    def upload_files(
        self,
        db: Session,
        *,
        storage_id: int,
        path: Optional[str],
        files: List[UploadItem],
    ) -> Dict[str, Any]:
        """逐个写入文件；单个文件失败只记录日志并跳过，已成功的文件不回滚。"""
        if not files:
            raise ValidationError("未选择任何文件")
        namespace = self.get_namespace(db, storage_id=storage_id)
        limit = get_settings().max_upload_size_bytes

        results: List[Dict[str, Any]] = []
        for filename, content, content_type in files:
            try:
                if len(content) > limit:
                    raise ValidationError(f"文件超过大小限制（{get_settings().max_upload_size_mb} MB）")
                mime = content_type or mimetypes.guess_type(filename or "")[0]
                entry = namespace.create_file(path, filename, content, mime)
            except AppException as exc:
                logger.warning("Upload of %r to storage %s failed: %s", filename, storage_id, exc.detail)
                results.append({"filename": filename, "status": "error", "message": exc.detail})
                continue
            results.append({"filename": filename, "status": "success", "entry": entry.to_dict()})

        succeeded = sum(1 for r in results if r["status"] == "success")
        msg = "上传成功" if succeeded == len(results) else f"上传完成：成功 {succeeded} 个，失败 {len(results) - succeeded} 个"
        return create_response(msg, {"results": results}, HTTP_STATUS_OK)

    def create_directory(self, db: Session, *, storage_id: int, path: Optional[str], name: str) -> Dict[str, Any]:
        entry = self.get_namespace(db, storage_id=storage_id).create_directory(path, name)
        return create_response("新建文件夹成功", entry.to_dict(), HTTP_STATUS_OK)

    def delete_item(self, db: Session, *, storage_id: int, key: str) -> Dict[str, Any]:
        target = normalize_key(key)
        deleted = self.get_namespace(db, storage_id=storage_id).delete_item(target)

        # 同一逻辑操作内清理收藏与分享记录
        recursive = is_directory_key(target)
        stars = starred_item_crud.delete_keys(
            db, storage_id=storage_id, key=target, recursive=recursive, auto_commit=False
        )
        shares = share_link_crud.delete_keys(
            db, storage_id=storage_id, key=target, recursive=recursive, auto_commit=False
        )
        db.commit()
        logger.info(
            "Delete on storage %s: key=%s objects=%s stars=%s shares=%s",
            storage_id, target, len(deleted), stars, shares,
        )
        return create_response("删除成功", {"key": target, "deleted": len(deleted)}, HTTP_STATUS_OK)

    # ----------------------------
    # 下载
    # ----------------------------
    def download(self, db: Session, *, storage_id: int, key: str) -> Response:
        target = normalize_key(key)
        if not target or is_directory_key(target):
            raise ValidationError("仅支持下载文件")
        return self._get_backend(db, storage_id=storage_id).download(key=target)

    def create_download_link(self, db: Session, *, storage_id: int, key: str, base_url: str) -> Dict[str, Any]:
        """生成 1 小时有效的下载直链：S3 使用预签名地址，其余后端使用签名令牌。"""
        target = normalize_key(key)
        if not target or is_directory_key(target):
            raise ValidationError("仅支持下载文件")
        backend = self._get_backend(db, storage_id=storage_id)
        if backend.head(key=target) is None:
            raise NotFoundError("文件不存在")

        settings = get_settings()
        expires_in = settings.download_link_expire_seconds
        url = backend.presign(key=target, expires_in=expires_in)
        if url is None:
            token = create_download_token(storage_id, target, expires_seconds=expires_in)
            base = settings.public_base_url or base_url
            url = f"{base.rstrip('/')}{settings.api_v1_str}/files/signed?t={token}"
        data = {"url": url, "expiresAt": to_iso(expires_after(expires_in))}
        return create_response("生成下载链接成功", data, HTTP_STATUS_OK)

    def download_signed(self, db: Session, *, token: str) -> Response:
        grant = read_download_token(token)
        if grant is None:
            raise NotFoundError("下载链接无效或已过期")
        storage_id, key = grant
        return self.download(db, storage_id=storage_id, key=key)


file_service = FileService()
