"""运行配置：环境变量与 ``.env`` 文件经 pydantic-settings 解析后缓存为单例。

加载顺序（后者覆盖前者）：
1. ``.env``；
2. ``.env.<ENVIRONMENT>``，``DEBUG`` 为真且未指定时视为 ``development``；
3. 若设置了 ``ENV_FILE``，则只加载该文件。
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

PROJECT_ROOT = next(
    (parent for parent in Path(__file__).resolve().parents if (parent / "app").is_dir()),
    Path(__file__).resolve().parent,
)

_TRUTHY = {"1", "true", "yes", "on"}


def _env_files() -> List[Path]:
    override = os.getenv("ENV_FILE")
    if override:
        return [PROJECT_ROOT / override]

    files = [PROJECT_ROOT / ".env"]
    environment = os.getenv("ENVIRONMENT")
    if environment is None and (os.getenv("DEBUG") or "").strip().lower() in _TRUTHY:
        environment = "development"
    if environment:
        files.append(PROJECT_ROOT / (environment if environment.startswith(".env") else f".env.{environment}"))
    return files


for _index, _path in enumerate(_env_files()):
    if _path.exists():
        # 基础 .env 不覆盖进程里已有的变量，环境专属文件则覆盖
        load_dotenv(_path, override=_index > 0 or bool(os.getenv("ENV_FILE")), encoding="utf-8")


class Settings(BaseSettings):
    """字段名即环境变量名（不区分大小写），例如 ``jwt_secret_key`` 对应 ``JWT_SECRET_KEY``。"""

    model_config = SettingsConfigDict(extra="ignore", case_sensitive=False)

    project_name: str = "ASM Drive API"
    api_v1_str: str = "/api/v1"
    debug: bool = False
    app_port: int = 8000
    timezone: str = "Asia/Shanghai"

    # 数据库：DATABASE_URL 优先，否则拼接 PostgreSQL
    database_url: Optional[str] = None
    database_host: str = "localhost"
    database_port: int = 5432
    database_user: str = "postgres"
    database_password: str = "postgres"
    database_name: str = "asmdrive"
    database_echo: bool = False

    # 会话
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_db: int = 0
    jwt_secret_key: str = "changeme"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24

    # 日志
    log_level: str = "INFO"
    log_dir: str = "log"
    log_file_name: str = "app.log"
    log_json: bool = False

    # 首次启动写入的默认存储源
    default_storage_name: str = "默认存储"
    default_storage_type: str = "LOCAL"
    local_storage_root: str = "storage"
    # 本地存储源的根目录只能位于该目录之下，缺省为 LOCAL_STORAGE_ROOT
    local_storage_base_dir: Optional[str] = None
    s3_region: Optional[str] = None
    s3_bucket_name: Optional[str] = None
    s3_access_key_id: Optional[str] = None
    s3_secret_access_key: Optional[str] = None
    s3_path_prefix: Optional[str] = None
    s3_endpoint_url: Optional[str] = None

    # 链接与上传
    download_link_expire_seconds: int = 3600
    share_link_expire_seconds: int = 7 * 24 * 3600
    public_base_url: str = ""
    max_upload_size_mb: int = 50

    @field_validator("log_level", "default_storage_type")
    @classmethod
    def _upper(cls, value: str) -> str:
        return value.strip().upper()

    @field_validator("public_base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.strip().rstrip("/")

    @property
    def sql_database_url(self) -> str:
        if self.database_url:
            return self.database_url
        return (
            f"postgresql+psycopg2://{self.database_user}:{self.database_password}"
            f"@{self.database_host}:{self.database_port}/{self.database_name}"
        )

    @property
    def redis_url(self) -> str:
        return f"redis://{self.redis_host}:{self.redis_port}/{self.redis_db}"

    @staticmethod
    def _under_root(raw: str) -> Path:
        path = Path(raw)
        return path if path.is_absolute() else PROJECT_ROOT / path

    @property
    def log_directory(self) -> Path:
        return self._under_root(self.log_dir)

    @property
    def log_file_path(self) -> Path:
        return self.log_directory / self.log_file_name

    @property
    def local_storage_directory(self) -> Path:
        return self._under_root(self.local_storage_root)

    @property
    def local_storage_base_directory(self) -> Path:
        raw = self.local_storage_base_dir or self.local_storage_root
        return self._under_root(raw).resolve()

    @property
    def max_upload_size_bytes(self) -> int:
        return max(self.max_upload_size_mb, 1) * 1024 * 1024

    @property
    def timezone_info(self) -> ZoneInfo:
        """配置的时区无效时回退到 UTC。"""
        try:
            return ZoneInfo(self.timezone)
        except ZoneInfoNotFoundError:
            return ZoneInfo("UTC")


@lru_cache
def get_settings() -> Settings:
    return Settings()
