"""凭证相关工具：bcrypt 密码哈希、会话 JWT 与下载直链令牌。"""

from contextvars import ContextVar
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Tuple

import bcrypt
from jose import JWTError, jwt

from .config import get_settings
from .constants import TOKEN_PURPOSE_DOWNLOAD
from .logger import logger

_refreshed_token_ctx: ContextVar[Optional[str]] = ContextVar("refreshed_token", default=None)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))


def get_password_hash(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def _sign(claims: Dict[str, Any], lifetime: timedelta) -> str:
    settings = get_settings()
    body = dict(claims, exp=datetime.now(timezone.utc) + lifetime)
    return jwt.encode(body, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def _read(token: str, *, verify_exp: bool) -> Optional[Dict[str, Any]]:
    settings = get_settings()
    try:
        return jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
            options={"verify_exp": verify_exp},
        )
    except JWTError as exc:
        logger.warning("Rejected token: %s", exc)
        return None


# ----------------------------
# 会话令牌
# ----------------------------
def create_access_token(claims: Dict[str, Any]) -> str:
    return _sign(claims, timedelta(minutes=get_settings().access_token_expire_minutes))


def decode_token(token: str) -> Optional[Dict[str, Any]]:
    """解析会话令牌；有效期由会话存储的 TTL 决定，因此不校验 ``exp``。"""
    return _read(token, verify_exp=False)


def store_refreshed_token(token: Optional[str]) -> None:
    """记录本次请求续签的访问令牌，响应阶段附带返回。"""
    _refreshed_token_ctx.set(token)


def consume_refreshed_token() -> Optional[str]:
    return _refreshed_token_ctx.get()


# ----------------------------
# 下载直链令牌
# ----------------------------
def create_download_token(storage_id: int, key: str, *, expires_seconds: int) -> str:
    """签发不绑定会话的下载令牌，持有者在有效期内可直接下载该文件。"""
    claims = {"purpose": TOKEN_PURPOSE_DOWNLOAD, "storage_id": storage_id, "key": key}
    return _sign(claims, timedelta(seconds=max(int(expires_seconds), 1)))


def read_download_token(token: str) -> Optional[Tuple[int, str]]:
    """校验下载令牌，返回 ``(storage_id, key)``；过期、伪造或用途不符时返回 ``None``。"""
    claims = _read(token, verify_exp=True)
    if not claims or claims.get("purpose") != TOKEN_PURPOSE_DOWNLOAD:
        return None
    storage_id, key = claims.get("storage_id"), claims.get("key")
    if storage_id is None or not key:
        return None
    return int(storage_id), str(key)
