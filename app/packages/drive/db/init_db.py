"""Database bootstrapping utilities."""

from __future__ import annotations

from sqlalchemy.orm import Session

from app.packages.drive.core.config import get_settings
from app.packages.drive.core.constants import (
    DEFAULT_ADMIN_NICKNAME,
    DEFAULT_ADMIN_PASSWORD,
    DEFAULT_ADMIN_USERNAME,
    STORAGE_TYPE_LOCAL,
    STORAGE_TYPE_S3,
    STORAGE_TYPES,
)
from app.packages.drive.core.logger import logger
from app.packages.drive.core.security import get_password_hash
from app.packages.drive.crud.storage_config import storage_config_crud
from app.packages.drive.crud.users import user_crud
from app.packages.drive.db import session as db_session
from app.packages.drive.models import StorageConfig, User
from app.packages.drive.models.base import Base


def init_db() -> None:
    """Create all database tables if they do not exist and seed baseline data."""
    Base.metadata.create_all(bind=db_session.engine)

    session = db_session.SessionLocal()
    try:
        _seed_admin_user(session)
        _seed_default_storage_if_needed(session)
        session.commit()
    except Exception:
        session.rollback()
        logger.exception("Failed to seed default data during database initialization")
        raise
    finally:
        session.close()


def _seed_admin_user(db: Session) -> None:
    if user_crud.get_by_username(db, DEFAULT_ADMIN_USERNAME) is not None:
        return
    db.add(
        User(
            username=DEFAULT_ADMIN_USERNAME,
            hashed_password=get_password_hash(DEFAULT_ADMIN_PASSWORD),
            nickname=DEFAULT_ADMIN_NICKNAME,
            is_active=True,
        )
    )
    db.flush()
    logger.info("Seeded default administrator '%s'", DEFAULT_ADMIN_USERNAME)


def _seed_default_storage_if_needed(db: Session) -> None:
    """首次启动时按环境变量写入一个默认存储源；已有任意存储源则跳过。"""
    if storage_config_crud.count(db) > 0:
        return

    settings = get_settings()
    storage_type = settings.default_storage_type or STORAGE_TYPE_LOCAL
    if storage_type not in STORAGE_TYPES:
        logger.warning("Unknown DEFAULT_STORAGE_TYPE %r, falling back to LOCAL", storage_type)
        storage_type = STORAGE_TYPE_LOCAL

    config = StorageConfig(name=settings.default_storage_name, type=storage_type)
    if storage_type == STORAGE_TYPE_LOCAL:
        root = settings.local_storage_directory
        root.mkdir(parents=True, exist_ok=True)
        config.local_root_path = str(root)
    elif storage_type == STORAGE_TYPE_S3:
        if not settings.s3_bucket_name:
            logger.warning("DEFAULT_STORAGE_TYPE=S3 but S3_BUCKET_NAME is empty; skipping default storage")
            return
        config.region = settings.s3_region
        config.bucket_name = settings.s3_bucket_name
        config.access_key_id = settings.s3_access_key_id
        config.secret_access_key = settings.s3_secret_access_key
        config.path_prefix = settings.s3_path_prefix
        config.endpoint_url = settings.s3_endpoint_url

    db.add(config)
    db.flush()
    logger.info("Seeded default storage '%s' (%s)", config.name, config.type)
