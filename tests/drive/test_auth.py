"""认证接口的集成测试用例。"""

from fastapi.testclient import TestClient


def test_register_user_success(client: TestClient):
    response = client.post(
        "/api/v1/auth/register",
        json={"username": "tester", "password": "tester123", "nickname": "测试"},
    )

    assert response.status_code == 200
    payload = response.json()
    assert payload["code"] == 200
    assert payload["msg"] == "注册成功"
    assert payload["data"]["username"] == "tester"
    assert payload["data"]["nickname"] == "测试"


def test_register_user_duplicate_username(client: TestClient):
    """重复用户名时应返回 409 冲突。"""
    client.post("/api/v1/auth/register", json={"username": "duplicate", "password": "tester123"})
    response = client.post("/api/v1/auth/register", json={"username": "duplicate", "password": "tester123"})

    assert response.status_code == 409
    payload = response.json()
    assert payload["code"] == 409
    assert payload["msg"] == "用户名已存在"


def test_login_success(client: TestClient):
    response = client.post("/api/v1/auth/login", json={"username": "admin", "password": "admin123"})

    assert response.status_code == 200
    payload = response.json()
    assert payload["data"]["token_type"] == "bearer"
    assert payload["data"]["access_token"]
    assert payload["meta"]["access_token"] == payload["data"]["access_token"]


def test_login_invalid_credentials(client: TestClient):
    response = client.post("/api/v1/auth/login", json={"username": "admin", "password": "wrongpassword"})
    assert response.status_code == 401
    payload = response.json()
    assert payload["code"] == 401
    assert payload["msg"] == "用户名或密码错误"


def test_login_validation_error(client: TestClient):
    response = client.post("/api/v1/auth/login", json={"username": "ad"})
    assert response.status_code == 422
    assert response.json()["msg"] == "请求参数验证失败"


def test_me_and_logout(client: TestClient, auth_headers: dict[str, str]):
    me = client.get("/api/v1/auth/me", headers=auth_headers)
    assert me.status_code == 200
    assert me.json()["data"]["username"] == "admin"

    out = client.post("/api/v1/auth/logout", headers=auth_headers)
    assert out.status_code == 200

    # 会话已删除，旧令牌失效
    again = client.get("/api/v1/auth/me", headers=auth_headers)
    assert again.status_code == 401


def test_files_require_authentication(client: TestClient):
    response = client.get("/api/v1/files", params={"storageId": 1})
    assert response.status_code == 401
    assert response.json()["msg"] == "缺少认证信息"


def test_health(client: TestClient):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["data"]["status"] == "healthy"
    assert response.headers.get("X-Request-ID")
