"""分享链接 CRUD。"""

from __future__ import annotations

from typing import Optional

from sqlalchemy.orm import Session

from app.packages.drive.crud.base import CRUDBase
from app.packages.drive.models.share_link import ShareLink


class CRUDShareLink(CRUDBase[ShareLink]):
    def get_by_share_id(self, db: Session, share_id: str) -> Optional[ShareLink]:
        return self.query(db).filter(ShareLink.share_id == share_id).first()


share_link_crud = CRUDShareLink(ShareLink)
