"""API v1 汇总路由：统一挂载所有版本化的子路由。"""

from fastapi import APIRouter

from app.packages.drive.api.v1.endpoints import auth, files, shares, stars, storage_configs

api_router = APIRouter()
api_router.include_router(auth.router)
api_router.include_router(storage_configs.router)
api_router.include_router(files.router)
api_router.include_router(stars.router)
api_router.include_router(shares.router)
