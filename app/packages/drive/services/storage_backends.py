"""存储后端抽象与实现：把本地目录、S3 与进程内存统一成扁平键空间。

所有后端都只暴露同一组能力：``list(prefix, delimiter)``、``head``、``get``、
``put``、``delete``、``delete_many``。目录在键空间中表现为以 '/' 结尾的键：
对象存储里是零字节占位对象（或仅由更深的键隐含），本地文件系统里是真实目录。
"""

from __future__ import annotations

import mimetypes
import os
import shutil
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from fastapi.responses import FileResponse, RedirectResponse, Response

from app.packages.drive.core.constants import (
    PATH_DELIMITER,
    S3_DELETE_BATCH_SIZE,
    STORAGE_TYPE_LOCAL,
    STORAGE_TYPE_MEMORY,
    STORAGE_TYPE_S3,
)
from app.packages.drive.core.exceptions import (
    AlreadyExistsError,
    NotFoundError,
    UpstreamError,
    ValidationError,
)
from app.packages.drive.core.logger import logger


def _norm_mime(key: str) -> str:
    mime, _ = mimetypes.guess_type(key)
    return mime or "application/octet-stream"


def _basename(key: str) -> str:
    return key.rstrip(PATH_DELIMITER).rsplit(PATH_DELIMITER, 1)[-1]


# ------------------------------------------
# 公共数据结构
# ------------------------------------------

@dataclass
class StoredObject:
    key: str
    size: int = 0
    last_modified: Optional[datetime] = None
    content_type: Optional[str] = None


@dataclass
class ListingPage:
    """一次列举调用的结果；``common_prefixes`` 只在指定分隔符时出现。"""

    objects: List[StoredObject] = field(default_factory=list)
    common_prefixes: List[str] = field(default_factory=list)
    is_truncated: bool = False
    next_token: Optional[str] = None


class StorageBackend:
    """存储后端接口。

    ``hierarchical`` 为 True 表示目录是真实存在的实体（本地文件系统）：
    新建目录要求父目录存在且同名目录不存在，删除不存在的键视为 404。
    对象存储类后端则是幂等的覆盖/删除语义。
    """

    type: str = ""
    hierarchical: bool = False

    def list(
        self,
        *,
        prefix: str,
        delimiter: Optional[str] = PATH_DELIMITER,
        continuation_token: Optional[str] = None,
        max_keys: Optional[int] = None,
    ) -> ListingPage:
        raise NotImplementedError

    def head(self, *, key: str) -> Optional[StoredObject]:
        raise NotImplementedError

    def get(self, *, key: str) -> bytes:
        raise NotImplementedError

    def put(self, *, key: str, body: bytes, content_type: Optional[str] = None) -> StoredObject:
        raise NotImplementedError

    def delete(self, *, key: str) -> None:
        raise NotImplementedError

    def delete_many(self, *, keys: List[str]) -> None:
        for key in keys:
            self.delete(key=key)

    def exists(self, *, key: str) -> bool:
        return self.head(key=key) is not None

    def presign(self, *, key: str, expires_in: int, download: bool = True) -> Optional[str]:
        """返回可直接访问对象的预签名地址；不支持的后端返回 ``None``。"""
        return None

    def download(self, *, key: str) -> Response:
        obj = self.head(key=key)
        if obj is None or key.endswith(PATH_DELIMITER):
            raise NotFoundError("文件不存在")
        filename = _basename(key)
        return Response(
            content=self.get(key=key),
            media_type=obj.content_type or _norm_mime(key),
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )


# ------------------------------------------
# 内存实现（mock 服务端）
# ------------------------------------------


@dataclass
class _MemoryObject:
    body: bytes
    content_type: Optional[str]
    last_modified: datetime


class MemoryBackend(StorageBackend):
    """进程内的对象存储模拟，语义与 S3 ``ListObjectsV2`` 保持一致。

    ``page_size`` 模拟服务端单页上限（对象与公共前缀合计），用于覆盖分页路径。
    """

    type = STORAGE_TYPE_MEMORY

    def __init__(self, *, page_size: Optional[int] = None) -> None:
        self.page_size = page_size
        self._objects: Dict[str, _MemoryObject] = {}
        self._lock = threading.Lock()

    def list(
        self,
        *,
        prefix: str,
        delimiter: Optional[str] = PATH_DELIMITER,
        continuation_token: Optional[str] = None,
        max_keys: Optional[int] = None,
    ) -> ListingPage:
        with self._lock:
            keys = sorted(k for k in self._objects if k.startswith(prefix))
            snapshot = {k: self._objects[k] for k in keys}

        # 先折叠公共前缀，再按字典序分页；每个条目为 (排序键, 是否公共前缀)
        entries: list[tuple[str, bool]] = []
        seen_prefixes: set[str] = set()
        for key in keys:
            rest = key[len(prefix):]
            if delimiter and delimiter in rest:
                common = prefix + rest[: rest.index(delimiter) + len(delimiter)]
                if common not in seen_prefixes:
                    seen_prefixes.add(common)
                    entries.append((common, True))
                continue
            entries.append((key, False))

        if continuation_token:
            entries = [e for e in entries if e[0] > continuation_token]

        limit = min(x for x in (max_keys, self.page_size, len(entries) or 1) if x)
        page_entries = entries[:limit]
        truncated = len(entries) > len(page_entries)

        page = ListingPage(is_truncated=truncated)
        for name, is_prefix in page_entries:
            if is_prefix:
                page.common_prefixes.append(name)
                continue
            obj = snapshot[name]
            page.objects.append(
                StoredObject(
                    key=name,
                    size=len(obj.body),
                    last_modified=obj.last_modified,
                    content_type=obj.content_type,
                )
            )
        if truncated and page_entries:
            page.next_token = page_entries[-1][0]
        return page

    def head(self, *, key: str) -> Optional[StoredObject]:
        with self._lock:
            obj = self._objects.get(key)
        if obj is None:
            return None
        return StoredObject(key=key, size=len(obj.body), last_modified=obj.last_modified, content_type=obj.content_type)

    def get(self, *, key: str) -> bytes:
        with self._lock:
            obj = self._objects.get(key)
        if obj is None:
            raise NotFoundError("文件不存在")
        return obj.body

    def put(self, *, key: str, body: bytes, content_type: Optional[str] = None) -> StoredObject:
        obj = _MemoryObject(body=bytes(body), content_type=content_type, last_modified=datetime.now(timezone.utc))
        with self._lock:
            self._objects[key] = obj
        return StoredObject(key=key, size=len(obj.body), last_modified=obj.last_modified, content_type=content_type)

    def delete(self, *, key: str) -> None:
        with self._lock:
            self._objects.pop(key, None)

    def delete_many(self, *, keys: List[str]) -> None:
        with self._lock:
            for key in keys:
                self._objects.pop(key, None)


# ------------------------------------------
# 本地文件系统实现
# ------------------------------------------


class LocalBackend(StorageBackend):
    """把根目录下的文件树映射为扁平键：目录 ``a/b`` 对应键 ``a/b/``。"""

    type = STORAGE_TYPE_LOCAL
    hierarchical = True

    def __init__(self, root: str):
        self.root = Path(root).resolve()
        if not self.root.exists():
            try:
                self.root.mkdir(parents=True, exist_ok=True)
            except OSError as exc:  # pragma: no cover - 极端情况下可能失败
                raise UpstreamError(f"无法创建本地根目录: {exc}") from exc

    # 统一的安全路径拼接，防止路径遍历
    def _resolve(self, key: str) -> Path:
        rel = key.strip().lstrip(PATH_DELIMITER)
        try:
            candidate = (self.root / rel).resolve()
        except ValueError as exc:
            # 例如键中含有空字节
            raise ValidationError("非法路径: 包含无效字符") from exc
        try:
            candidate.relative_to(self.root)
        except ValueError as exc:
            raise ValidationError("非法路径: 越权访问") from exc
        return candidate

    def _key_for(self, path: Path, *, is_dir: bool) -> str:
        rel = path.relative_to(self.root).as_posix()
        return rel + PATH_DELIMITER if is_dir else rel

    @staticmethod
    def _stat_object(key: str, path: Path, *, is_dir: bool) -> StoredObject:
        stat = path.stat()
        return StoredObject(
            key=key,
            size=0 if is_dir else int(stat.st_size),
            last_modified=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
            content_type=None if is_dir else _norm_mime(key),
        )

    def _stat_or_skip(self, key: str, path: Path, *, is_dir: bool) -> Optional[StoredObject]:
        """列举期间条目被删除或为失效的符号链接时返回 ``None``。"""
        try:
            return self._stat_object(key, path, is_dir=is_dir)
        except FileNotFoundError:
            logger.warning("Skipping unreadable entry %s", path)
            return None

    def list(
        self,
        *,
        prefix: str,
        delimiter: Optional[str] = PATH_DELIMITER,
        continuation_token: Optional[str] = None,
        max_keys: Optional[int] = None,
    ) -> ListingPage:
        # 前缀可能停在段中间（如 "docs/re"），先定位其所在目录
        dir_key = prefix[: prefix.rfind(PATH_DELIMITER) + 1] if PATH_DELIMITER in prefix else ""
        base = self._resolve(dir_key)
        page = ListingPage()
        if not base.is_dir():
            if delimiter:
                raise NotFoundError("路径不存在")
            return page

        try:
            if delimiter:
                for entry in sorted(base.iterdir(), key=lambda p: p.name):
                    is_dir = entry.is_dir()
                    key = self._key_for(entry, is_dir=is_dir)
                    if not key.startswith(prefix):
                        continue
                    if is_dir:
                        page.common_prefixes.append(key)
                    else:
                        self._append(page, self._stat_or_skip(key, entry, is_dir=False))
                return page

            if dir_key and dir_key == prefix:
                page.objects.append(self._stat_object(dir_key, base, is_dir=True))
            for current, dirnames, filenames in os.walk(base):
                current_path = Path(current)
                dirnames.sort()
                for name in dirnames:
                    path = current_path / name
                    key = self._key_for(path, is_dir=True)
                    if key.startswith(prefix):
                        self._append(page, self._stat_or_skip(key, path, is_dir=True))
                for name in sorted(filenames):
                    path = current_path / name
                    key = self._key_for(path, is_dir=False)
                    if key.startswith(prefix):
                        self._append(page, self._stat_or_skip(key, path, is_dir=False))
        except PermissionError as exc:
            raise UpstreamError("无法读取目录内容：权限不足") from exc
        except OSError as exc:
            raise UpstreamError(f"读取目录失败: {exc}") from exc
        return page

    @staticmethod
    def _append(page: ListingPage, obj: Optional[StoredObject]) -> None:
        if obj is not None:
            page.objects.append(obj)

    def head(self, *, key: str) -> Optional[StoredObject]:
        path = self._resolve(key)
        if key.endswith(PATH_DELIMITER) or not key:
            if path.is_dir():
                return self._stat_object(key, path, is_dir=True)
            return None
        if path.is_file():
            return self._stat_object(key, path, is_dir=False)
        return None

    def get(self, *, key: str) -> bytes:
        path = self._resolve(key)
        if not path.is_file():
            raise NotFoundError("文件不存在")
        return path.read_bytes()

    def put(self, *, key: str, body: bytes, content_type: Optional[str] = None) -> StoredObject:
        path = self._resolve(key)
        is_dir = key.endswith(PATH_DELIMITER)
        try:
            if is_dir:
                if path.exists() and not path.is_dir():
                    raise AlreadyExistsError("同名文件已存在")
                path.mkdir(parents=True, exist_ok=True)
            else:
                if path.is_dir():
                    raise AlreadyExistsError("同名文件夹已存在")
                path.parent.mkdir(parents=True, exist_ok=True)
                path.write_bytes(body)
        except OSError as exc:
            logger.exception("Local write failed for %s", key)
            raise UpstreamError(f"写入失败: {exc}") from exc
        return self._stat_object(key, path, is_dir=is_dir)

    def delete(self, *, key: str) -> None:
        path = self._resolve(key)
        if path == self.root:
            raise ValidationError("根目录不允许删除")
        try:
            if path.is_dir():
                shutil.rmtree(path)
            elif path.exists():
                path.unlink()
        except OSError as exc:
            raise UpstreamError(f"删除失败: {exc}") from exc

    def download(self, *, key: str) -> Response:
        path = self._resolve(key)
        if key.endswith(PATH_DELIMITER) or not path.is_file():
            raise NotFoundError("文件不存在")
        return FileResponse(str(path), media_type=_norm_mime(key), filename=path.name)


# ------------------------------------------
# S3 实现（boto3）
# ------------------------------------------


class S3Backend(StorageBackend):
    """基于 ``list_objects_v2`` 的对象存储后端，可选 ``path_prefix`` 作为命名空间根。"""

    type = STORAGE_TYPE_S3

    def __init__(
        self,
        *,
        bucket: str,
        region: Optional[str] = None,
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None,
        prefix: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        client=None,
    ):
        self.bucket = bucket
        self.region = region
        self.prefix = (prefix or "").strip(PATH_DELIMITER)
        if self.prefix:
            self.prefix += PATH_DELIMITER
        self._client = client or boto3.client(
            "s3",
            region_name=region,
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
            endpoint_url=endpoint_url or None,
        )

    # 拼接/剥离基于 path_prefix 的对象 key
    def _join_key(self, key: str) -> str:
        return self.prefix + key.lstrip(PATH_DELIMITER)

    def _strip_key(self, full_key: str) -> str:
        return full_key[len(self.prefix):] if self.prefix and full_key.startswith(self.prefix) else full_key

    def list(
        self,
        *,
        prefix: str,
        delimiter: Optional[str] = PATH_DELIMITER,
        continuation_token: Optional[str] = None,
        max_keys: Optional[int] = None,
    ) -> ListingPage:
        params = {"Bucket": self.bucket, "Prefix": self._join_key(prefix)}
        if delimiter:
            params["Delimiter"] = delimiter
        if continuation_token:
            params["ContinuationToken"] = continuation_token
        if max_keys:
            params["MaxKeys"] = max_keys
        try:
            resp = self._client.list_objects_v2(**params)
        except (ClientError, BotoCoreError) as exc:
            logger.exception("S3 list failed: bucket=%s prefix=%s", self.bucket, params["Prefix"])
            raise UpstreamError(f"S3 列举失败: {exc}") from exc

        page = ListingPage(
            is_truncated=bool(resp.get("IsTruncated")),
            next_token=resp.get("NextContinuationToken"),
        )
        for common in resp.get("CommonPrefixes", []) or []:
            value = common.get("Prefix")
            if value:
                page.common_prefixes.append(self._strip_key(value))
        for content in resp.get("Contents", []) or []:
            full_key = content.get("Key")
            if not full_key:
                continue
            last_modified = content.get("LastModified")
            page.objects.append(
                StoredObject(
                    key=self._strip_key(full_key),
                    size=int(content.get("Size") or 0),
                    last_modified=last_modified.astimezone(timezone.utc) if last_modified else None,
                )
            )
        return page

    def head(self, *, key: str) -> Optional[StoredObject]:
        try:
            resp = self._client.head_object(Bucket=self.bucket, Key=self._join_key(key))
        except ClientError as exc:
            code = str(exc.response.get("Error", {}).get("Code", ""))
            if code in {"404", "NoSuchKey", "NotFound"}:
                return None
            raise UpstreamError(f"S3 查询失败: {exc}") from exc
        except BotoCoreError as exc:
            raise UpstreamError(f"S3 查询失败: {exc}") from exc
        last_modified = resp.get("LastModified")
        return StoredObject(
            key=key,
            size=int(resp.get("ContentLength") or 0),
            last_modified=last_modified.astimezone(timezone.utc) if last_modified else None,
            content_type=resp.get("ContentType"),
        )

    def get(self, *, key: str) -> bytes:
        try:
            resp = self._client.get_object(Bucket=self.bucket, Key=self._join_key(key))
            return resp["Body"].read()
        except ClientError as exc:
            code = str(exc.response.get("Error", {}).get("Code", ""))
            if code in {"404", "NoSuchKey", "NotFound"}:
                raise NotFoundError("文件不存在") from exc
            raise UpstreamError(f"S3 读取失败: {exc}") from exc
        except BotoCoreError as exc:
            raise UpstreamError(f"S3 读取失败: {exc}") from exc

    def put(self, *, key: str, body: bytes, content_type: Optional[str] = None) -> StoredObject:
        params = {"Bucket": self.bucket, "Key": self._join_key(key), "Body": body}
        if content_type:
            params["ContentType"] = content_type
        try:
            self._client.put_object(**params)
        except (ClientError, BotoCoreError) as exc:
            logger.exception("S3 upload failed: %s", key)
            raise UpstreamError(f"S3 写入失败: {exc}") from exc
        return StoredObject(key=key, size=len(body), last_modified=datetime.now(timezone.utc), content_type=content_type)

    def delete(self, *, key: str) -> None:
        try:
            self._client.delete_object(Bucket=self.bucket, Key=self._join_key(key))
        except (ClientError, BotoCoreError) as exc:
            raise UpstreamError(f"S3 删除失败: {exc}") from exc

    def delete_many(self, *, keys: List[str]) -> None:
        # 批量删除（分批防止一次过多）
        for i in range(0, len(keys), S3_DELETE_BATCH_SIZE):
            batch = [{"Key": self._join_key(k)} for k in keys[i : i + S3_DELETE_BATCH_SIZE]]
            if not batch:
                continue
            try:
                resp = self._client.delete_objects(Bucket=self.bucket, Delete={"Objects": batch, "Quiet": True})
            except (ClientError, BotoCoreError) as exc:
                raise UpstreamError(f"S3 批量删除失败: {exc}") from exc
            errors = resp.get("Errors") or []
            if errors:
                logger.error("S3 batch delete reported %s errors, first=%s", len(errors), errors[0])
                raise UpstreamError("S3 批量删除部分失败", data={"failed": [e.get("Key") for e in errors]})

    def presign(self, *, key: str, expires_in: int, download: bool = True) -> Optional[str]:
        params = {"Bucket": self.bucket, "Key": self._join_key(key)}
        if download:
            params["ResponseContentDisposition"] = f'attachment; filename="{_basename(key)}"'
        try:
            return self._client.generate_presigned_url("get_object", Params=params, ExpiresIn=expires_in)
        except (ClientError, BotoCoreError) as exc:
            raise UpstreamError(f"预签名 URL 生成失败: {exc}") from exc

    def download(self, *, key: str) -> Response:
        return RedirectResponse(self.presign(key=key, expires_in=300))


# 内存后端按存储源 ID 复用，保证跨请求可见
_memory_backends: Dict[int, MemoryBackend] = {}
_memory_lock = threading.Lock()


def get_memory_backend(memory_key: Optional[int]) -> MemoryBackend:
    if memory_key is None:
        return MemoryBackend()
    with _memory_lock:
        backend = _memory_backends.get(memory_key)
        if backend is None:
            backend = MemoryBackend()
            _memory_backends[memory_key] = backend
        return backend


def drop_memory_backend(memory_key: int) -> None:
    with _memory_lock:
        _memory_backends.pop(memory_key, None)


# 存储源配置中与连接相关的字段，与 build_backend 的关键字参数一一对应
CONNECTION_FIELDS = (
    "region",
    "bucket_name",
    "path_prefix",
    "local_root_path",
    "access_key_id",
    "secret_access_key",
    "endpoint_url",
)


def build_backend(
    *,
    type: str,
    region: Optional[str] = None,
    bucket_name: Optional[str] = None,
    path_prefix: Optional[str] = None,
    local_root_path: Optional[str] = None,
    access_key_id: Optional[str] = None,
    secret_access_key: Optional[str] = None,
    endpoint_url: Optional[str] = None,
    memory_key: Optional[int] = None,
) -> StorageBackend:
    t = (type or "").upper()
    if t == STORAGE_TYPE_LOCAL:
        if not local_root_path:
            raise ValidationError("缺少本地根目录配置")
        return LocalBackend(local_root_path)
    if t == STORAGE_TYPE_S3:
        if not bucket_name:
            raise ValidationError("S3 配置不完整")
        return S3Backend(
            bucket=bucket_name,
            region=region,
            access_key_id=access_key_id,
            secret_access_key=secret_access_key,
            prefix=path_prefix,
            endpoint_url=endpoint_url,
        )
    if t == STORAGE_TYPE_MEMORY:
        return get_memory_backend(memory_key)
    raise ValidationError("不支持的存储类型")
