"""Request ID middleware: binds X-Request-ID to the logging context.

Reuses the incoming header when present, otherwise generates a UUID4, and echoes
the value back on the response.
"""

from __future__ import annotations

import uuid
from typing import Callable, Optional

from starlette.datastructures import MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

REQUEST_ID_HEADER = "x-request-id"


class RequestIdMiddleware:
    def __init__(self, app: ASGIApp, *, set_request_id: Callable[[Optional[str]], None]) -> None:
        self.app = app
        self.set_request_id = set_request_id

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:  # pragma: no cover
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        rid = None
        for name, value in scope.get("headers", []):
            if name.decode("latin-1").lower() == REQUEST_ID_HEADER:
                rid = value.decode("latin-1").strip() or None
                break
        rid = rid or str(uuid.uuid4())
        self.set_request_id(rid)

        async def send_with_request_id(message: Message) -> None:
            if message["type"] == "http.response.start":
                MutableHeaders(scope=message)["X-Request-ID"] = rid
            await send(message)

        try:
            await self.app(scope, receive, send_with_request_id)
        finally:
            self.set_request_id(None)
