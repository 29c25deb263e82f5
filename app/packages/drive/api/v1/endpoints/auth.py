"""认证相关路由定义。"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.packages.drive.api.v1.schemas.auth import (
    LoginRequest,
    LogoutResponse,
    RegisterRequest,
    TokenResponse,
    UserProfileResponse,
)
from app.packages.drive.core.dependencies import get_current_active_user, get_current_session_id, get_db
from app.packages.drive.models.user import User
from app.packages.drive.services.auth_service import auth_service

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=UserProfileResponse)
def register(payload: RegisterRequest, db: Session = Depends(get_db)):
    """调用认证服务完成注册流程并返回统一响应。"""
    return auth_service.register_user(
        db,
        username=payload.username,
        password=payload.password,
        nickname=payload.nickname,
        email=payload.email,
    )


@router.post("/login", response_model=TokenResponse)
def login(payload: LoginRequest, db: Session = Depends(get_db)):
    return auth_service.login(db, username=payload.username, password=payload.password)


@router.post("/logout", response_model=LogoutResponse)
def logout(session_id: str = Depends(get_current_session_id)):
    """退出登录，前端需删除本地缓存的令牌。"""
    return auth_service.logout(session_id)


@router.get("/me", response_model=UserProfileResponse)
def read_me(current_user: User = Depends(get_current_active_user)):
    return auth_service.get_profile(current_user)
