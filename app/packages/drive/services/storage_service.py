"""存储源配置服务：增删改查、连接探测与默认状态展示。"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from app.packages.drive.core.config import get_settings
from app.packages.drive.core.constants import (
    HTTP_STATUS_OK,
    STORAGE_TYPE_LOCAL,
    STORAGE_TYPE_MEMORY,
    STORAGE_TYPE_S3,
    STORAGE_TYPES,
)
from app.packages.drive.core.exceptions import AlreadyExistsError, AppException, NotFoundError, ValidationError
from app.packages.drive.core.logger import logger
from app.packages.drive.core.responses import create_response
from app.packages.drive.core.timezone import format_datetime
from app.packages.drive.crud.storage_config import storage_config_crud
from app.packages.drive.models.storage import StorageConfig
from app.packages.drive.services.file_service import backend_for_config
from app.packages.drive.services.storage_backends import (
    CONNECTION_FIELDS,
    StorageBackend,
    build_backend,
    drop_memory_backend,
)

# 各类型必须给出的字段及缺失时的提示
REQUIRED_FIELDS = {
    STORAGE_TYPE_S3: {"bucket_name": "S3 配置字段 bucket_name 不能为空"},
    STORAGE_TYPE_LOCAL: {"local_root_path": "本地根目录不能为空"},
    STORAGE_TYPE_MEMORY: {},
}

# 回传给前端的字段，密钥不在其中
PUBLIC_FIELDS = ("id", "name", "type", "region", "bucket_name", "path_prefix", "endpoint_url", "local_root_path")


def _clean(value: Any) -> Optional[str]:
    text = "" if value is None else str(value).strip()
    return text or None


def _confined_local_root(raw: str) -> str:
    """本地根目录必须落在 ``LOCAL_STORAGE_BASE_DIR`` 之内，防止暴露整个主机文件系统。"""
    base = get_settings().local_storage_base_directory
    root = Path(os.path.abspath(raw)).resolve()
    if root != base and base not in root.parents:
        raise ValidationError(f"本地根目录必须位于 {base} 之下")
    return str(root)


def probe(backend: StorageBackend) -> None:
    """列举根目录第一页，失败时抛出 ``AppException``。"""
    backend.list(prefix="", max_keys=1)


class StorageService:
    def list_configs(self, db: Session) -> Dict[str, Any]:
        data = [self._serialize(cfg) for cfg in storage_config_crud.list_all(db)]
        return create_response("获取存储源配置成功", data, HTTP_STATUS_OK)

    def get_config(self, db: Session, *, id: int) -> Dict[str, Any]:
        return create_response("获取存储源详情成功", self._serialize(self._require(db, id)), HTTP_STATUS_OK)

    def create_config(self, db: Session, payload: dict, *, user_id: Optional[int] = None) -> Dict[str, Any]:
        values = self._validated(payload)
        self._ensure_name_free(db, values["name"])
        cfg = storage_config_crud.create(db, {**values, "created_by": user_id})
        logger.info("Storage config %s created (%s)", cfg.id, cfg.type)
        return create_response("创建存储源成功", self._serialize(cfg), HTTP_STATUS_OK)

    def update_config(self, db: Session, *, id: int, payload: dict) -> Dict[str, Any]:
        """局部更新：未出现在请求体里的字段沿用原值，合并后整体重新校验。"""
        cfg = self._require(db, id)
        current = {name: getattr(cfg, name) for name in ("name", "type", *CONNECTION_FIELDS)}
        values = self._validated({**current, **payload})
        if values["name"] != cfg.name:
            self._ensure_name_free(db, values["name"])

        for name, value in values.items():
            setattr(cfg, name, value)
        cfg = storage_config_crud.save(db, cfg)
        logger.info("Storage config %s updated", cfg.id)
        return create_response("更新存储源成功", self._serialize(cfg), HTTP_STATUS_OK)

    def delete_config(self, db: Session, *, id: int) -> Dict[str, Any]:
        cfg = self._require(db, id)
        storage_config_crud.soft_delete(db, cfg)
        if cfg.type == STORAGE_TYPE_MEMORY:
            drop_memory_backend(cfg.id)
        logger.info("Storage config %s deleted", id)
        return create_response("删除存储源成功", None, HTTP_STATUS_OK)

    def test_connection(self, payload: dict) -> Dict[str, Any]:
        values = self._validated(payload)
        try:
            probe(build_backend(type=values["type"], **{name: values[name] for name in CONNECTION_FIELDS}))
        except AppException as exc:
            return create_response(f"连接失败：{exc.detail}", {"success": False}, HTTP_STATUS_OK)
        return create_response("连接测试成功", {"success": True}, HTTP_STATUS_OK)

    # ----------------------------
    # 内部工具
    # ----------------------------
    @staticmethod
    def _require(db: Session, id: int) -> StorageConfig:
        cfg = storage_config_crud.get(db, id)
        if cfg is None:
            raise NotFoundError("存储源不存在或已删除")
        return cfg

    @staticmethod
    def _ensure_name_free(db: Session, name: str) -> None:
        # 软删除的记录仍占用唯一约束
        if storage_config_crud.get_by_name(db, name, include_deleted=True) is not None:
            raise AlreadyExistsError("存储源名称已存在")

    @staticmethod
    def _validated(payload: dict) -> Dict[str, Any]:
        storage_type = (_clean(payload.get("type")) or "").upper()
        if not storage_type:
            raise ValidationError("存储类型不能为空")
        if storage_type not in STORAGE_TYPES:
            raise ValidationError("存储类型仅支持 LOCAL、S3 或 MEMORY")
        name = _clean(payload.get("name"))
        if not name:
            raise ValidationError("存储源名称不能为空")

        values: Dict[str, Any] = {"name": name, "type": storage_type}
        values.update({field: _clean(payload.get(field)) for field in CONNECTION_FIELDS})
        for field, message in REQUIRED_FIELDS[storage_type].items():
            if not values[field]:
                raise ValidationError(message)
        if values["local_root_path"]:
            values["local_root_path"] = _confined_local_root(values["local_root_path"])
        return values

    @staticmethod
    def _serialize(cfg: StorageConfig) -> Dict[str, Any]:
        data: Dict[str, Any] = {field: getattr(cfg, field) for field in PUBLIC_FIELDS}
        data["created_at"] = format_datetime(cfg.create_time)
        try:
            probe(backend_for_config(cfg))
            data["status"] = "connected"
        except AppException as exc:
            logger.warning("Storage %s is unreachable: %s", cfg.id, exc.detail)
            data["status"] = "error"
        return data


storage_service = StorageService()
