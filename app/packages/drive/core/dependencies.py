"""路由层复用的 FastAPI 依赖：数据库会话与登录态解析。"""

from collections.abc import Generator
from typing import Any, Dict, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from app.packages.drive.core.constants import ACCESS_TOKEN_TYPE
from app.packages.drive.core.security import create_access_token, decode_token, store_refreshed_token
from app.packages.drive.core.session import touch_session
from app.packages.drive.crud.users import user_crud
from app.packages.drive.db import session as db_session
from app.packages.drive.models.user import User

bearer_scheme = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


def get_db() -> Generator[Session, None, None]:
    db = db_session.SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_token_claims(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Dict[str, Any]:
    """校验 ``Authorization: Bearer <token>`` 并返回令牌载荷，要求携带 ``user_id`` 与 ``sid``。"""
    if credentials is None:
        raise _unauthorized("缺少认证信息")
    if credentials.scheme.lower() != ACCESS_TOKEN_TYPE:
        raise _unauthorized("认证类型无效")
    claims = decode_token(credentials.credentials)
    if not claims:
        raise _unauthorized("Token 无效或已过期")
    if claims.get("user_id") is None or not claims.get("sid"):
        raise _unauthorized("Token 无效")
    return claims


def get_current_user(
    claims: Dict[str, Any] = Depends(get_token_claims),
    db: Session = Depends(get_db),
) -> User:
    user = user_crud.get(db, claims["user_id"])
    if user is None:
        raise _unauthorized("用户不存在")
    if not touch_session(claims["sid"], user.id):
        raise _unauthorized("Token 无效或已过期")

    # 每次认证成功都续签，新令牌在响应阶段返回
    store_refreshed_token(create_access_token({"user_id": user.id, "username": user.username, "sid": claims["sid"]}))
    return user


def get_current_active_user(current_user: User = Depends(get_current_user)) -> User:
    if not current_user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="用户未激活")
    return current_user


def get_current_session_id(
    claims: Dict[str, Any] = Depends(get_token_claims),
    _: User = Depends(get_current_active_user),
) -> str:
    return claims["sid"]
