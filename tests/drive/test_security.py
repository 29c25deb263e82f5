"""令牌与会话存储的单元测试。"""

from datetime import timedelta

from app.packages.drive.core.constants import TOKEN_PURPOSE_DOWNLOAD
from app.packages.drive.core.security import (
    _sign,
    create_access_token,
    create_download_token,
    decode_token,
    get_password_hash,
    read_download_token,
    verify_password,
)
from app.packages.drive.core.session import MemorySessionStore


def test_password_hash_verifies_only_original():
    hashed = get_password_hash("secret123")
    assert hashed != "secret123"
    assert verify_password("secret123", hashed)
    assert not verify_password("secret124", hashed)


def test_download_token_grants_storage_and_key():
    token = create_download_token(7, "docs/a.txt", expires_seconds=60)
    assert read_download_token(token) == (7, "docs/a.txt")


def test_session_token_is_not_a_download_grant():
    token = create_access_token({"user_id": 1, "username": "admin", "sid": "abc"})
    assert decode_token(token)["sid"] == "abc"
    assert read_download_token(token) is None


def test_expired_download_token_is_rejected():
    expired = _sign(
        {"purpose": TOKEN_PURPOSE_DOWNLOAD, "storage_id": 1, "key": "a.txt"},
        timedelta(seconds=-60),
    )
    assert read_download_token(expired) is None


def test_read_download_token_rejects_garbage():
    assert read_download_token("not-a-token") is None


def test_memory_session_store_sliding_expiry(monkeypatch):
    clock = {"now": 1000.0}
    monkeypatch.setattr("app.packages.drive.core.session.time.monotonic", lambda: clock["now"])
    store = MemorySessionStore()
    store.put("s1", 42, ttl=10)

    clock["now"] += 8
    assert store.refresh("s1", 42, ttl=10)
    # 续期后从刷新时刻重新计时
    clock["now"] += 8
    assert store.refresh("s1", 42, ttl=10)
    assert not store.refresh("s1", 43, ttl=10)
    # 用户不匹配时会话被清除
    assert not store.refresh("s1", 42, ttl=10)


def test_memory_session_store_expires_and_drops(monkeypatch):
    clock = {"now": 0.0}
    monkeypatch.setattr("app.packages.drive.core.session.time.monotonic", lambda: clock["now"])
    store = MemorySessionStore()
    store.put("s1", 1, ttl=5)
    store.put("s2", 1, ttl=5)

    clock["now"] = 6
    assert not store.refresh("s1", 1, ttl=5)

    store.drop("s2")
    clock["now"] = 0
    assert not store.refresh("s2", 1, ttl=5)
