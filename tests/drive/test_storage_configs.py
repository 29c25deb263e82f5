"""存储源配置接口的集成测试。"""

from fastapi.testclient import TestClient


def test_storage_config_crud(client: TestClient, auth_headers, local_root):
    created = client.post(
        "/api/v1/storage-configs",
        json={"name": "本地-CRUD", "type": "LOCAL", "local_root_path": local_root},
        headers=auth_headers,
    )
    assert created.status_code == 200
    cfg = created.json()["data"]
    assert cfg["type"] == "LOCAL"
    assert cfg["status"] == "connected"
    assert "secret_access_key" not in cfg

    dup = client.post(
        "/api/v1/storage-configs",
        json={"name": "本地-CRUD", "type": "MEMORY"},
        headers=auth_headers,
    )
    assert dup.status_code == 409

    detail = client.get(f"/api/v1/storage-configs/{cfg['id']}", headers=auth_headers)
    assert detail.status_code == 200
    assert detail.json()["data"]["local_root_path"] == cfg["local_root_path"]

    updated = client.put(
        f"/api/v1/storage-configs/{cfg['id']}",
        json={"name": "本地-CRUD-改名"},
        headers=auth_headers,
    )
    assert updated.status_code == 200
    assert updated.json()["data"]["name"] == "本地-CRUD-改名"

    removed = client.delete(f"/api/v1/storage-configs/{cfg['id']}", headers=auth_headers)
    assert removed.status_code == 200
    assert client.get(f"/api/v1/storage-configs/{cfg['id']}", headers=auth_headers).status_code == 404


def test_storage_config_validation(client: TestClient, auth_headers):
    no_root = client.post("/api/v1/storage-configs", json={"name": "缺根目录", "type": "LOCAL"}, headers=auth_headers)
    assert no_root.status_code == 400

    no_bucket = client.post("/api/v1/storage-configs", json={"name": "缺桶", "type": "S3"}, headers=auth_headers)
    assert no_bucket.status_code == 400
    assert "bucket_name" in no_bucket.json()["msg"]

    bad_type = client.post("/api/v1/storage-configs", json={"name": "FTP", "type": "FTP"}, headers=auth_headers)
    assert bad_type.status_code == 422


def test_local_root_outside_base_dir_is_rejected(client: TestClient, auth_headers):
    resp = client.post(
        "/api/v1/storage-configs",
        json={"name": "整机根目录", "type": "LOCAL", "local_root_path": "/"},
        headers=auth_headers,
    )
    assert resp.status_code == 400
    assert "本地根目录必须位于" in resp.json()["msg"]

    tested = client.post(
        "/api/v1/storage-configs/test",
        json={"name": "整机根目录", "type": "LOCAL", "local_root_path": "/"},
        headers=auth_headers,
    )
    assert tested.status_code == 400


def test_storage_connection_test(client: TestClient, auth_headers, local_root):
    ok = client.post(
        "/api/v1/storage-configs/test",
        json={"name": "连通性测试", "type": "LOCAL", "local_root_path": local_root},
        headers=auth_headers,
    )
    assert ok.status_code == 200
    assert ok.json()["data"] == {"success": True}

    memory = client.post("/api/v1/storage-configs/test", json={"name": "连通性测试", "type": "MEMORY"}, headers=auth_headers)
    assert memory.json()["data"]["success"] is True


def test_deleted_memory_storage_drops_its_contents(client: TestClient, auth_headers, storage_factory):
    sid = storage_factory(type="MEMORY")
    client.post("/api/v1/folders", params={"storageId": sid, "path": "/"}, json={"name": "x"}, headers=auth_headers)
    assert client.delete(f"/api/v1/storage-configs/{sid}", headers=auth_headers).status_code == 200
    assert client.get("/api/v1/files", params={"storageId": sid}, headers=auth_headers).status_code == 404
