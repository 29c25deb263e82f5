"""分享链接：不透明的分享 ID 指向某个文件键，到期自动失效。"""

from datetime import datetime

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from app.packages.drive.models.base import Base, CreatedByMixin, StorageKeyMixin, TimestampMixin


class ShareLink(StorageKeyMixin, CreatedByMixin, TimestampMixin, Base):
    __tablename__ = "share_links"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    share_id: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
