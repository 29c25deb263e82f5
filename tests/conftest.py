"""测试夹具：为 pytest 提供数据库、存储目录与客户端的共享配置。"""

import os
import shutil
import tempfile
import uuid
from typing import Generator

# 在导入应用之前确定测试环境：日志与默认本地存储都写入临时目录
_TMP_ROOT = tempfile.mkdtemp(prefix="asm_drive_tests_")
TEST_DB_PATH = os.path.join(os.path.dirname(__file__), "test.db")
TEST_DATABASE_URL = f"sqlite:///{TEST_DB_PATH}"

os.environ.setdefault("APP_ACTIVE_PACKAGE", "drive")
os.environ["DATABASE_URL"] = TEST_DATABASE_URL
os.environ["LOG_DIR"] = os.path.join(_TMP_ROOT, "log")
os.environ["LOCAL_STORAGE_ROOT"] = os.path.join(_TMP_ROOT, "storage")
os.environ["LOCAL_STORAGE_BASE_DIR"] = _TMP_ROOT
os.environ["DEFAULT_STORAGE_TYPE"] = "LOCAL"
os.environ["PUBLIC_BASE_URL"] = ""

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402

from app.main import app  # noqa: E402
from app.packages.drive.core.dependencies import get_db  # noqa: E402
from app.packages.drive.db import session as db_session  # noqa: E402
from app.packages.drive.db.init_db import init_db  # noqa: E402
from app.packages.drive.models.base import Base  # noqa: E402


@pytest.fixture(scope="session", autouse=True)
def setup_test_database() -> Generator[None, None, None]:
    """创建隔离的 SQLite 测试数据库，并在会话结束后清理。"""
    if os.path.exists(TEST_DB_PATH):
        os.remove(TEST_DB_PATH)

    engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    db_session.engine = engine
    db_session.SessionLocal = TestingSessionLocal

    Base.metadata.create_all(bind=engine)
    init_db()
    yield

    engine.dispose()
    if os.path.exists(TEST_DB_PATH):
        os.remove(TEST_DB_PATH)
    shutil.rmtree(_TMP_ROOT, ignore_errors=True)


@pytest.fixture()
def db_session_fixture() -> Generator[Session, None, None]:
    """提供给测试用例使用的数据库会话。"""
    session = db_session.SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client(db_session_fixture):
    """构建 FastAPI TestClient，并注入测试专用的数据库依赖。"""
    def override_get_db() -> Generator[Session, None, None]:
        session = db_session.SessionLocal()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture()
def auth_headers(client: TestClient) -> dict[str, str]:
    resp = client.post("/api/v1/auth/login", json={"username": "admin", "password": "admin123"})
    assert resp.status_code == 200
    return {"Authorization": f"Bearer {resp.json()['data']['access_token']}"}


@pytest.fixture()
def local_root() -> Generator[str, None, None]:
    root = tempfile.mkdtemp(prefix="asm_local_", dir=_TMP_ROOT)
    yield root
    shutil.rmtree(root, ignore_errors=True)


@pytest.fixture()
def storage_factory(client: TestClient, auth_headers: dict[str, str]):
    """通过接口创建存储源并返回其 ID，名称自动去重。"""
    def _create(**payload) -> int:
        payload.setdefault("name", f"存储-{uuid.uuid4().hex[:8]}")
        resp = client.post("/api/v1/storage-configs", json=payload, headers=auth_headers)
        assert resp.status_code == 200, resp.text
        return resp.json()["data"]["id"]

    return _create


@pytest.fixture()
def memory_storage_id(storage_factory) -> int:
    """每个用例独享一个 MEMORY 存储源。"""
    return storage_factory(type="MEMORY")


@pytest.fixture()
def local_storage_id(storage_factory, local_root: str) -> int:
    return storage_factory(type="LOCAL", local_root_path=local_root)
