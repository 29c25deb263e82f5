"""ORM 基类与可复用的列混入。"""

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Integer, MetaData, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql import expression

# 约束命名保持稳定，迁移脚本才能按名字引用
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    metadata = MetaData(naming_convention=NAMING_CONVENTION)

    def __repr__(self) -> str:
        ident = getattr(self, "id", None)
        return f"<{type(self).__name__} id={ident}>"


class TimestampMixin:
    """记录创建与最后修改时间，均由数据库填充。"""

    create_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    update_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )


class SoftDeleteMixin:
    is_deleted: Mapped[bool] = mapped_column(Boolean, server_default=expression.false(), nullable=False)


class CreatedByMixin:
    # 创建人用户 ID；初始化数据为空
    created_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)


class StorageKeyMixin:
    """指向某个存储源中一个扁平键的旁路记录。

    不对存储对象建外键；对象在外部消失后记录仍会保留，直到通过接口删除时被清理。
    """

    storage_id: Mapped[int] = mapped_column(Integer, index=True)
    key: Mapped[str] = mapped_column(String(1024), index=True)
