"""分享链接服务：为单个文件生成带过期时间的不透明分享地址。"""

from __future__ import annotations

import uuid
from typing import Any, Dict, Optional

from fastapi.responses import Response
from sqlalchemy.orm import Session

from app.packages.drive.core.config import get_settings
from app.packages.drive.core.constants import HTTP_STATUS_OK
from app.packages.drive.core.exceptions import NotFoundError, ValidationError
from app.packages.drive.core.logger import logger
from app.packages.drive.core.responses import create_response
from app.packages.drive.core.timezone import as_utc, expires_after, to_iso, utc_now
from app.packages.drive.crud.share_link import share_link_crud
from app.packages.drive.services.file_service import file_service
from app.packages.drive.utils.path_utils import is_directory_key, normalize_key


class ShareService:
    def create_share_link(
        self,
        db: Session,
        *,
        storage_id: int,
        key: str,
        base_url: str,
        expires_in: Optional[int] = None,
        user_id: Optional[int] = None,
    ) -> Dict[str, Any]:
        """每次调用都生成新的分享 ID；链接只能等待过期，不支持撤销。"""
        target = normalize_key(key)
        if not target or is_directory_key(target):
            raise NotFoundError("文件不存在")
        namespace = file_service.get_namespace(db, storage_id=storage_id)
        if namespace.lookup(target) is None:
            raise NotFoundError("文件不存在")

        settings = get_settings()
        ttl = settings.share_link_expire_seconds if expires_in is None else int(expires_in)
        if ttl <= 0:
            raise ValidationError("有效期必须大于 0 秒")

        link = share_link_crud.create(
            db,
            {
                "share_id": uuid.uuid4().hex,
                "storage_id": storage_id,
                "key": target,
                "expires_at": expires_after(ttl),
                "created_by": user_id,
            },
        )
        url = f"{(settings.public_base_url or base_url).rstrip('/')}{settings.api_v1_str}/shared/{link.share_id}"
        logger.info("Share link %s created for %s on storage %s", link.share_id, target, storage_id)
        data = {"url": url, "expiresAt": to_iso(link.expires_at), "shareId": link.share_id}
        return create_response("生成分享链接成功", data, HTTP_STATUS_OK)

    def open_shared(self, db: Session, *, share_id: str) -> Response:
        link = share_link_crud.get_by_share_id(db, share_id)
        if link is None or as_utc(link.expires_at) <= utc_now():
            raise NotFoundError("分享链接不存在或已过期")
        return file_service.download(db, storage_id=link.storage_id, key=link.key)


share_service = ShareService()
