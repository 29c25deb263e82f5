"""业务异常层级与全局异常处理器，错误同样以统一信封返回。"""

from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse

from app.packages.drive.core.logger import logger
from app.packages.drive.core.responses import create_response


class AppException(HTTPException):
    """携带统一响应结构的业务异常，方便在全局处理中转换响应体。"""

    def __init__(self, msg: str, code: int = status.HTTP_400_BAD_REQUEST, data=None) -> None:
        super().__init__(status_code=code, detail=msg)
        self.data = data


class NotFoundError(AppException):
    """目标键、父目录或存储源不存在。"""

    def __init__(self, msg: str = "资源不存在", data=None) -> None:
        super().__init__(msg, status.HTTP_404_NOT_FOUND, data)


class AlreadyExistsError(AppException):
    """同名目录已存在（仅文件系统后端会触发）。"""

    def __init__(self, msg: str = "目标已存在", data=None) -> None:
        super().__init__(msg, status.HTTP_409_CONFLICT, data)


class ValidationError(AppException):
    """请求字段缺失或取值非法，例如空文件夹名。"""

    def __init__(self, msg: str = "请求参数不合法", data=None) -> None:
        super().__init__(msg, status.HTTP_400_BAD_REQUEST, data)


class UpstreamError(AppException):
    """底层存储调用失败。"""

    def __init__(self, msg: str = "存储服务调用失败", data=None) -> None:
        super().__init__(msg, status.HTTP_500_INTERNAL_SERVER_ERROR, data)


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:  # pragma: no cover - framework glue
    body = create_response(exc.detail, getattr(exc, "data", None), exc.status_code)
    return JSONResponse(status_code=exc.status_code, content=body, headers=getattr(exc, "headers", None))


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:  # pragma: no cover - framework glue
    logger.exception("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    code = status.HTTP_500_INTERNAL_SERVER_ERROR
    return JSONResponse(status_code=code, content=create_response("服务器内部错误", None, code))
