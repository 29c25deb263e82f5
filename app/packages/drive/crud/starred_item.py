"""收藏表 CRUD。"""

from __future__ import annotations

from typing import List, Optional

from sqlalchemy.orm import Session

from app.packages.drive.crud.base import CRUDBase
from app.packages.drive.models.starred_item import StarredItem


class CRUDStarredItem(CRUDBase[StarredItem]):
    def get_by_key(self, db: Session, *, storage_id: int, key: str) -> Optional[StarredItem]:
        return (
            self.query(db)
            .filter(StarredItem.storage_id == storage_id)
            .filter(StarredItem.key == key)
            .first()
        )

    def list_starred(self, db: Session, *, storage_id: int) -> List[StarredItem]:
        return (
            self.query(db)
            .filter(StarredItem.storage_id == storage_id)
            .filter(StarredItem.starred.is_(True))
            .order_by(StarredItem.key.asc())
            .all()
        )

    def starred_keys(self, db: Session, *, storage_id: int, keys: list[str]) -> set[str]:
        if not keys:
            return set()
        rows = (
            self.query(db)
            .with_entities(StarredItem.key)
            .filter(StarredItem.storage_id == storage_id)
            .filter(StarredItem.starred.is_(True))
            .filter(StarredItem.key.in_(keys))
            .all()
        )
        return {row[0] for row in rows}


starred_item_crud = CRUDStarredItem(StarredItem)
