"""存储源配置模型：支持本地文件系统、S3 与内存三类后端。"""

from typing import Optional

from sqlalchemy import String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.packages.drive.models.base import Base, CreatedByMixin, SoftDeleteMixin, TimestampMixin


class StorageConfig(CreatedByMixin, TimestampMixin, SoftDeleteMixin, Base):
    """存储源配置，保存访问不同存储后端所需的连接信息。

    说明：
    - ``type`` 取值 "LOCAL"、"S3"、"MEMORY"；
    - S3 类型字段：``region``、``bucket_name``、``path_prefix``、``access_key_id``、
      ``secret_access_key``、``endpoint_url``；
    - 本地类型字段：``local_root_path``；
    - MEMORY 类型无需额外字段，数据只存在于当前进程，适合演示与测试；
    - 仅实现软删除。
    """

    __tablename__ = "storage_configs"
    __table_args__ = (
        UniqueConstraint("name", name="uq_storage_configs_name"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(100), index=True)
    type: Mapped[str] = mapped_column(String(16))

    # S3 only
    region: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    bucket_name: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    path_prefix: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    access_key_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    secret_access_key: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)
    endpoint_url: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # LOCAL only
    local_root_path: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
