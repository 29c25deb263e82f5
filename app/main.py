"""ASGI 入口：按 ``APP_ACTIVE_PACKAGE`` 组装 FastAPI 应用。"""

from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from app.middleware.request_id import RequestIdMiddleware
from app.packages import get_active_package

package = get_active_package()
package.setup_logging()
settings = package.get_settings()
logger = package.logger
create_response = package.create_response


@asynccontextmanager
async def lifespan(_: FastAPI):
    package.init_db()
    logger.info("%s ready on port %s (package=%s)", settings.project_name, settings.app_port, package.name)
    yield
    logger.info("%s shutting down", settings.project_name)


def _jsonable(value: Any) -> Any:
    # 校验错误的 ctx 里可能夹带异常实例或原始字节
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    if isinstance(value, Exception):
        return str(value)
    return value


async def validation_exception_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
    code = status.HTTP_422_UNPROCESSABLE_ENTITY
    return JSONResponse(status_code=code, content=create_response("请求参数验证失败", _jsonable(exc.errors()), code))


class AccessTokenHeaderMiddleware(BaseHTTPMiddleware):
    """把滑动续签得到的新令牌写入 ``X-Access-Token`` 响应头。"""

    async def dispatch(self, request, call_next):  # pragma: no cover - 框架胶水代码
        response = await call_next(request)
        refreshed = package.consume_refreshed_token()
        if refreshed:
            response.headers["X-Access-Token"] = refreshed
        return response


app = FastAPI(title=settings.project_name, debug=settings.debug, lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Access-Token", "X-Request-ID"],
)
app.add_middleware(AccessTokenHeaderMiddleware)
app.add_middleware(RequestIdMiddleware, set_request_id=package.set_request_id)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
package.mount(app, prefix=settings.api_v1_str)


@app.get("/health")
async def health_check() -> dict:
    return create_response("OK", {"status": "healthy"})
