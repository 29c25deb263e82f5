"""收藏表：星标是独立于存储对象的旁路元数据。

存储规则：
- (storage_id, key) 唯一；目录键以 '/' 结尾；
- 只在设置星标时记录一次类型/大小/修改时间，之后不会与存储重新核对。
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, Boolean, DateTime, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.packages.drive.models.base import Base, CreatedByMixin, StorageKeyMixin, TimestampMixin


class StarredItem(StorageKeyMixin, CreatedByMixin, TimestampMixin, Base):
    __tablename__ = "starred_items"
    __table_args__ = (
        UniqueConstraint("storage_id", "key", name="uq_starred_items_storage_key"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    kind: Mapped[str] = mapped_column(String(16))  # "file" | "directory"
    starred: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    size_bytes: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    last_modified: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
