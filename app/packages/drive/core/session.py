"""登录会话：令牌里只放会话 ID，有效期由这里的滑动 TTL 决定。

优先使用 Redis；连不上时退回进程内字典，单进程开发与测试足够用。
"""

from __future__ import annotations

import threading
import time
import uuid
from typing import Dict, Optional, Protocol, Tuple

import redis

from app.packages.drive.core.config import get_settings
from app.packages.drive.core.logger import logger

SESSION_KEY_PREFIX = "drive:session:"


def session_ttl_seconds() -> int:
    return max(get_settings().access_token_expire_minutes, 1) * 60


class SessionStore(Protocol):
    def put(self, session_id: str, user_id: int, ttl: int) -> None: ...

    def refresh(self, session_id: str, user_id: int, ttl: int) -> bool: ...

    def drop(self, session_id: str) -> None: ...


class RedisSessionStore:
    def __init__(self, url: str) -> None:
        self._redis = redis.Redis.from_url(url, decode_responses=True, socket_connect_timeout=1)
        self._redis.ping()

    def put(self, session_id: str, user_id: int, ttl: int) -> None:
        self._redis.set(SESSION_KEY_PREFIX + session_id, str(user_id), ex=ttl)

    def refresh(self, session_id: str, user_id: int, ttl: int) -> bool:
        # GETEX 一次往返完成读取与续期
        owner = self._redis.getex(SESSION_KEY_PREFIX + session_id, ex=ttl)
        return owner == str(user_id)

    def drop(self, session_id: str) -> None:
        self._redis.delete(SESSION_KEY_PREFIX + session_id)


class MemorySessionStore:
    def __init__(self) -> None:
        self._sessions: Dict[str, Tuple[int, float]] = {}
        self._lock = threading.Lock()

    def put(self, session_id: str, user_id: int, ttl: int) -> None:
        with self._lock:
            self._sessions[session_id] = (user_id, time.monotonic() + ttl)

    def refresh(self, session_id: str, user_id: int, ttl: int) -> bool:
        now = time.monotonic()
        with self._lock:
            owner, deadline = self._sessions.get(session_id, (None, 0.0))
            if owner != user_id or deadline < now:
                self._sessions.pop(session_id, None)
                return False
            self._sessions[session_id] = (owner, now + ttl)
            return True

    def drop(self, session_id: str) -> None:
        with self._lock:
            self._sessions.pop(session_id, None)


_store: Optional[SessionStore] = None
_store_lock = threading.Lock()


def get_session_store() -> SessionStore:
    global _store
    with _store_lock:
        if _store is None:
            url = get_settings().redis_url
            try:
                _store = RedisSessionStore(url)
                logger.info("Sessions stored in Redis at %s", url)
            except redis.RedisError as exc:
                logger.warning("Redis unavailable (%s); keeping sessions in process memory", exc)
                _store = MemorySessionStore()
        return _store


def create_session(user_id: int) -> str:
    session_id = uuid.uuid4().hex
    get_session_store().put(session_id, user_id, session_ttl_seconds())
    return session_id


def touch_session(session_id: str, user_id: int) -> bool:
    """续期会话；会话不存在、已过期或不属于该用户时返回 ``False``。"""
    return get_session_store().refresh(session_id, user_id, session_ttl_seconds())


def delete_session(session_id: str) -> None:
    get_session_store().drop(session_id)
