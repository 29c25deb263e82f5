"""命名空间物化：把扁平键空间呈现为文件夹/文件树。

核心规则：
- 路径 ``["docs", "img"]`` 对应前缀 ``docs/img/``，根目录前缀为空串；
- 列举时以 '/' 为分隔符：公共前缀即子目录，其余对象即文件；
- 当前层级的目录占位对象（键恰好等于前缀）不会作为文件出现；
- 显式目录（零字节占位对象）与隐式目录（仅由更深的键推断）一视同仁；
- 删除目录即删除该前缀下的全部键，分页列举时反复执行同一查询直到清空。
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Optional, Sequence, Union

from app.packages.drive.core.constants import ENTRY_KIND_DIRECTORY, ENTRY_KIND_FILE, PATH_DELIMITER
from app.packages.drive.core.exceptions import AlreadyExistsError, NotFoundError, UpstreamError, ValidationError
from app.packages.drive.core.logger import logger
from app.packages.drive.core.timezone import format_datetime, to_iso, utc_now
from app.packages.drive.services.storage_backends import StorageBackend, StoredObject
from app.packages.drive.utils.path_utils import (
    is_directory_key,
    normalize_key,
    path_for_prefix,
    prefix_for,
    validate_name,
)

FILE_TYPE_GROUPS: Dict[str, set[str]] = {
    "image": {"jpg", "jpeg", "png", "gif", "bmp"},
    "video": {"mp4", "mov", "avi", "wmv"},
    "audio": {"mp3", "wav", "ogg"},
    "pdf": {"pdf"},
    "archive": {"zip", "rar", "tar", "gz"},
    "code": {"html", "css", "js", "ts", "jsx", "tsx", "json"},
    "document": {"doc", "docx"},
    "spreadsheet": {"xls", "xlsx"},
    "presentation": {"ppt", "pptx"},
}
FOLDER_TYPE = "folder"
DEFAULT_FILE_TYPE = "file"

SIZE_UNITS = ("Bytes", "KB", "MB", "GB", "TB")


def file_category(name: str) -> str:
    ext = os.path.splitext(name)[1].lower().lstrip(".")
    if not ext:
        return DEFAULT_FILE_TYPE
    for category, extensions in FILE_TYPE_GROUPS.items():
        if ext in extensions:
            return category
    return DEFAULT_FILE_TYPE


def format_size(size: Optional[int]) -> str:
    """按 1024 进制渲染大小，保留一位小数并去掉多余的 ``.0``。

    >>> format_size(1536)
    '1.5 KB'
    >>> format_size(1048576)
    '1 MB'
    """
    if not size or size <= 0:
        return "0 Bytes"
    value = float(size)
    unit = 0
    while value >= 1024 and unit < len(SIZE_UNITS) - 1:
        value /= 1024
        unit += 1
    # 与前端一致：恰好一半时向上取整（1.25 KB 显示为 1.3 KB）
    text = str(Decimal(value).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))
    if text.endswith(".0"):
        text = text[:-2]
    return f"{text} {SIZE_UNITS[unit]}"


@dataclass
class Entry:
    key: str
    kind: str
    size: Optional[int] = None
    last_modified: Optional[datetime] = None
    starred: bool = False

    @property
    def name(self) -> str:
        return self.key.rstrip(PATH_DELIMITER).rsplit(PATH_DELIMITER, 1)[-1]

    @property
    def is_directory(self) -> bool:
        return self.kind == ENTRY_KIND_DIRECTORY

    @property
    def type(self) -> str:
        return FOLDER_TYPE if self.is_directory else file_category(self.name)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.key,
            "key": self.key,
            "name": self.name,
            "kind": self.kind,
            "type": self.type,
            "parent": path_for_prefix(self.key)[:-1],
            "size": self.size,
            "sizeText": None if self.is_directory else format_size(self.size),
            "lastModified": to_iso(self.last_modified),
            "modified": format_datetime(self.last_modified),
            "starred": self.starred,
        }

    @classmethod
    def from_object(cls, obj: StoredObject) -> "Entry":
        kind = ENTRY_KIND_DIRECTORY if is_directory_key(obj.key) else ENTRY_KIND_FILE
        return cls(key=obj.key, kind=kind, size=None if kind == ENTRY_KIND_DIRECTORY else obj.size,
                   last_modified=obj.last_modified)


@dataclass
class Listing:
    path: List[str]
    prefix: str
    directories: List[Entry] = field(default_factory=list)
    files: List[Entry] = field(default_factory=list)

    @property
    def entries(self) -> List[Entry]:
        return [*self.directories, *self.files]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "prefix": self.prefix,
            "directories": [d.to_dict() for d in self.directories],
            "files": [f.to_dict() for f in self.files],
        }


PathLike = Union[str, Sequence[str], None]


class NamespaceMaterializer:
    """在任意 :class:`StorageBackend` 之上提供目录树视图与增删操作。"""

    def __init__(self, store: StorageBackend):
        self.store = store

    # ----------------------------
    # 查询
    # ----------------------------
    def list_children(self, path: PathLike = None) -> Listing:
        prefix = prefix_for(path)
        directories: Dict[str, Entry] = {}
        files: Dict[str, Entry] = {}

        token: Optional[str] = None
        while True:
            page = self.store.list(prefix=prefix, delimiter=PATH_DELIMITER, continuation_token=token)
            for common in page.common_prefixes:
                if common == prefix or not common.startswith(prefix):
                    continue
                directories.setdefault(common, Entry(key=common, kind=ENTRY_KIND_DIRECTORY))
            for obj in page.objects:
                # 当前层级的占位对象
                if obj.key == prefix:
                    continue
                rest = obj.key[len(prefix):]
                if is_directory_key(obj.key) and PATH_DELIMITER not in rest[:-1]:
                    directories.setdefault(obj.key, Entry.from_object(obj))
                    continue
                if PATH_DELIMITER in rest:
                    continue
                files[obj.key] = Entry.from_object(obj)
            if not page.is_truncated or not page.next_token:
                break
            token = page.next_token

        return Listing(
            path=path_for_prefix(prefix),
            prefix=prefix,
            directories=list(directories.values()),
            files=list(files.values()),
        )

    def lookup(self, key: str) -> Optional[Entry]:
        obj = self.store.head(key=normalize_key(key))
        return Entry.from_object(obj) if obj is not None else None

    # ----------------------------
    # 写入
    # ----------------------------
    def _ensure_parent(self, prefix: str) -> None:
        if self.store.hierarchical and prefix and self.store.head(key=prefix) is None:
            raise NotFoundError("父目录不存在")

    def create_file(
        self,
        path: PathLike,
        name: str,
        content: bytes,
        content_type: Optional[str] = None,
    ) -> Entry:
        prefix = prefix_for(path)
        filename = validate_name(name, label="文件名")
        self._ensure_parent(prefix)
        key = prefix + filename
        stored = self.store.put(key=key, body=content, content_type=content_type)
        logger.info("Stored object %s (%s bytes) on %s", key, len(content), self.store.type)
        return Entry(
            key=key,
            kind=ENTRY_KIND_FILE,
            size=len(content),
            last_modified=stored.last_modified or utc_now(),
        )

    def create_directory(self, path: PathLike, name: str) -> Entry:
        prefix = prefix_for(path)
        dirname = validate_name(name, label="文件夹名称")
        self._ensure_parent(prefix)
        key = prefix + dirname + PATH_DELIMITER
        if self.store.hierarchical and self.store.head(key=key) is not None:
            raise AlreadyExistsError("文件夹已存在")
        stored = self.store.put(key=key, body=b"")
        logger.info("Created directory %s on %s", key, self.store.type)
        return Entry(key=key, kind=ENTRY_KIND_DIRECTORY, last_modified=stored.last_modified or utc_now())

    # ----------------------------
    # 删除
    # ----------------------------
    def delete_item(self, key: str) -> List[str]:
        """删除文件或目录（递归），返回实际提交删除的键。"""
        target = normalize_key(key)
        if not target or target == PATH_DELIMITER:
            raise ValidationError("根目录不允许删除")
        if self.store.hierarchical and self.store.head(key=target) is None:
            raise NotFoundError("文件或目录不存在")

        if is_directory_key(target):
            deleted = self._delete_prefix(target)
        else:
            self.store.delete(key=target)
            deleted = [target]
        logger.info("Deleted %s (%s keys) on %s", target, len(deleted), self.store.type)
        return deleted

    def _delete_prefix(self, prefix: str) -> List[str]:
        # 每轮删除当前页后重新发起同一查询，而不是沿用续传令牌
        deleted: List[str] = []
        seen: set[str] = set()
        while True:
            page = self.store.list(prefix=prefix, delimiter=None)
            keys = [obj.key for obj in page.objects]
            if not keys:
                break
            fresh = [k for k in keys if k not in seen]
            if not fresh:
                logger.error("Recursive delete of %s stalled: listing returned only deleted keys", prefix)
                raise UpstreamError("目录删除未生效，已中止")
            self.store.delete_many(keys=keys)
            seen.update(fresh)
            deleted.extend(fresh)
            if not page.is_truncated:
                break
        return deleted
