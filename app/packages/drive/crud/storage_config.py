"""存储源配置 CRUD 封装。"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.packages.drive.crud.base import CRUDBase
from app.packages.drive.models.storage import StorageConfig


class CRUDStorageConfig(CRUDBase[StorageConfig]):
    def get_by_name(self, db: Session, name: str, *, include_deleted: bool = False) -> Optional[StorageConfig]:
        return self.query(db, include_deleted=include_deleted).filter(self.model.name == name).first()

    def count(self, db: Session) -> int:
        query = self.query(db).with_entities(func.count(self.model.id))
        return int(query.scalar() or 0)


storage_config_crud = CRUDStorageConfig(StorageConfig)
