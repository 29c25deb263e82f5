"""认证服务：封装注册、登录、退出与当前用户查询。"""

from typing import Optional

from sqlalchemy.orm import Session

from app.packages.drive.core.constants import (
    ACCESS_TOKEN_TYPE,
    HTTP_STATUS_CONFLICT,
    HTTP_STATUS_FORBIDDEN,
    HTTP_STATUS_OK,
    HTTP_STATUS_UNAUTHORIZED,
)
from app.packages.drive.core.exceptions import AppException
from app.packages.drive.core.logger import logger
from app.packages.drive.core.responses import create_response
from app.packages.drive.core.security import (
    create_access_token,
    get_password_hash,
    store_refreshed_token,
    verify_password,
)
from app.packages.drive.core.session import create_session, delete_session
from app.packages.drive.core.timezone import format_datetime
from app.packages.drive.crud.users import user_crud
from app.packages.drive.models.user import User


class AuthService:
    """负责处理用户注册与登录流程，并保持逻辑聚合。"""

    def register_user(
        self,
        db: Session,
        *,
        username: str,
        password: str,
        nickname: Optional[str] = None,
        email: Optional[str] = None,
    ) -> dict:
        if user_crud.get_by_username(db, username):
            raise AppException(msg="用户名已存在", code=HTTP_STATUS_CONFLICT)

        user = user_crud.create(
            db,
            {
                "username": username,
                "hashed_password": get_password_hash(password),
                "nickname": nickname or username,
                "email": email,
                "is_active": True,
            },
        )
        logger.info("User registered: %s", user.username)
        return create_response("注册成功", self.serialize_user(user), HTTP_STATUS_OK)

    def login(self, db: Session, *, username: str, password: str) -> dict:
        """校验用户凭证并签发访问令牌。"""
        user = user_crud.get_by_username(db, username)
        if user is None or not verify_password(password, user.hashed_password):
            logger.warning("Login failed for %s", username)
            raise AppException(msg="用户名或密码错误", code=HTTP_STATUS_UNAUTHORIZED)
        if not user.is_active:
            raise AppException(msg="用户未激活", code=HTTP_STATUS_FORBIDDEN)

        session_id = create_session(user.id)
        access_token = create_access_token({"user_id": user.id, "username": user.username, "sid": session_id})

        # 令牌同时放入 body.meta 与响应头
        store_refreshed_token(access_token)
        logger.info("User logged in: %s", user.username)
        return create_response(
            "登录成功",
            {"access_token": access_token, "token_type": ACCESS_TOKEN_TYPE},
            HTTP_STATUS_OK,
        )

    def logout(self, session_id: str) -> dict:
        delete_session(session_id)
        store_refreshed_token(None)
        return create_response("退出成功", None, HTTP_STATUS_OK)

    def get_profile(self, user: User) -> dict:
        return create_response("获取用户信息成功", self.serialize_user(user), HTTP_STATUS_OK)

    @staticmethod
    def serialize_user(user: User) -> dict:
        return {
            "user_id": user.id,
            "username": user.username,
            "nickname": user.nickname,
            "email": user.email,
            "is_active": user.is_active,
            "created_at": format_datetime(user.create_time),
        }


auth_service = AuthService()
