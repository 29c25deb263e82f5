"""模型包初始化，便于统一导入 ORM 实体并触发模型注册。"""

from app.packages.drive.models.share_link import ShareLink
from app.packages.drive.models.starred_item import StarredItem
from app.packages.drive.models.storage import StorageConfig
from app.packages.drive.models.user import User

__all__ = [
    "ShareLink",
    "StarredItem",
    "StorageConfig",
    "User",
]
