"""收藏服务：星标只写入旁路表，不改动存储对象。"""

from __future__ import annotations

from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from app.packages.drive.core.constants import ENTRY_KIND_DIRECTORY, ENTRY_KIND_FILE, HTTP_STATUS_OK, PATH_DELIMITER
from app.packages.drive.core.exceptions import ValidationError
from app.packages.drive.core.logger import logger
from app.packages.drive.core.responses import create_response
from app.packages.drive.core.timezone import as_utc
from app.packages.drive.crud.starred_item import starred_item_crud
from app.packages.drive.models.starred_item import StarredItem
from app.packages.drive.services.file_service import file_service
from app.packages.drive.services.namespace import Entry
from app.packages.drive.utils.path_utils import normalize_key


def _to_entry(item: StarredItem) -> Entry:
    return Entry(
        key=item.key,
        kind=item.kind,
        size=item.size_bytes,
        last_modified=as_utc(item.last_modified),
        starred=bool(item.starred),
    )


class StarService:
    def _normalize(self, kind: str, key: str) -> str:
        target = normalize_key(key)
        if not target:
            raise ValidationError("根目录不支持收藏")
        if kind == ENTRY_KIND_DIRECTORY:
            return target if target.endswith(PATH_DELIMITER) else target + PATH_DELIMITER
        if kind == ENTRY_KIND_FILE:
            if target.endswith(PATH_DELIMITER):
                raise ValidationError("文件键不能以 '/' 结尾")
            return target
        raise ValidationError("类型必须为 file 或 directory")

    def toggle_star(
        self,
        db: Session,
        *,
        storage_id: int,
        kind: str,
        key: str,
        starred: bool,
        user_id: Optional[int] = None,
    ) -> Dict[str, Any]:
        """设置或取消星标；重复设置同一状态是幂等的。

        元数据在设置星标时记录一次：能查到对象时取其大小与修改时间，否则为空。
        """
        target = self._normalize(kind, key)
        item = starred_item_crud.get_by_key(db, storage_id=storage_id, key=target)
        if item is None:
            item = StarredItem(storage_id=storage_id, key=target, kind=kind, created_by=user_id)

        if starred and not item.starred:
            found = file_service.get_namespace(db, storage_id=storage_id).lookup(target)
            item.size_bytes = found.size if found is not None else None
            item.last_modified = found.last_modified if found is not None else None
        item.kind = kind
        item.starred = starred
        saved = starred_item_crud.save(db, item)
        logger.info("Star %s on storage %s: key=%s", "set" if starred else "cleared", storage_id, target)
        return create_response("收藏成功" if starred else "已取消收藏", _to_entry(saved).to_dict(), HTTP_STATUS_OK)

    def get_starred(self, db: Session, *, storage_id: int) -> Dict[str, Any]:
        entries = [_to_entry(item) for item in starred_item_crud.list_starred(db, storage_id=storage_id)]
        data = {
            "directories": [e.to_dict() for e in entries if e.is_directory],
            "files": [e.to_dict() for e in entries if not e.is_directory],
        }
        return create_response("获取收藏列表成功", data, HTTP_STATUS_OK)


star_service = StarService()
