"""业务包契约：主应用只通过该结构与具体业务包交互。"""

from __future__ import annotations

from dataclasses import dataclass
from logging import Logger
from typing import Callable, Optional

from fastapi import APIRouter, FastAPI, HTTPException


@dataclass(frozen=True)
class AppPackage:
    name: str
    api_router: APIRouter
    get_settings: Callable[[], object]
    setup_logging: Callable[[], None]
    logger: Logger
    init_db: Callable[[], None]
    create_response: Callable[..., dict]
    http_exception_handler: Callable[..., object]
    generic_exception_handler: Callable[..., object]
    # 滑动会话续签出的新令牌，无则为 None
    consume_refreshed_token: Callable[[], Optional[str]]
    set_request_id: Callable[[Optional[str]], None]

    def mount(self, app: FastAPI, *, prefix: str) -> None:
        """挂载路由并注册包内的异常处理器。"""
        app.add_exception_handler(HTTPException, self.http_exception_handler)
        app.add_exception_handler(Exception, self.generic_exception_handler)
        app.include_router(self.api_router, prefix=prefix)
