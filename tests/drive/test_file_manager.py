"""文件管理接口集成测试：MEMORY 与 LOCAL 存储源。"""

import io
import os

import pytest
from fastapi.testclient import TestClient

from app.packages.drive.core.config import get_settings
from app.packages.drive.services.file_service import file_service


def _upload(client, headers, storage_id, path, *files):
    return client.post(
        "/api/v1/files",
        params={"storageId": storage_id, "path": path},
        files=[("files", (name, io.BytesIO(content), "application/octet-stream")) for name, content in files],
        headers=headers,
    )


def _mkdir(client, headers, storage_id, path, name):
    return client.post(
        "/api/v1/folders",
        params={"storageId": storage_id, "path": path},
        json={"name": name},
        headers=headers,
    )


def _list(client, headers, storage_id, path="/"):
    resp = client.get("/api/v1/files", params={"storageId": storage_id, "path": path}, headers=headers)
    assert resp.status_code == 200, resp.text
    return resp.json()["data"]


def _names(entries):
    return sorted(e["name"] for e in entries)


def test_memory_storage_browse_flow(client: TestClient, auth_headers, memory_storage_id):
    sid = memory_storage_id

    empty = _list(client, auth_headers, sid)
    assert empty == {"path": [], "prefix": "", "directories": [], "files": []}

    assert _mkdir(client, auth_headers, sid, "/", "docs").status_code == 200
    assert _mkdir(client, auth_headers, sid, "/docs", "img").status_code == 200

    up = _upload(client, auth_headers, sid, "/docs", ("report.pdf", b"%PDF-1.4"))
    assert up.status_code == 200
    result = up.json()["data"]["results"][0]
    assert result["status"] == "success"
    assert result["entry"]["key"] == "docs/report.pdf"
    assert result["entry"]["type"] == "pdf"
    assert result["entry"]["size"] == 8

    _upload(client, auth_headers, sid, "/docs/img", ("logo.png", b"\x89PNG"))
    _upload(client, auth_headers, sid, "/", ("readme.md", b"# readme"))

    root = _list(client, auth_headers, sid)
    assert _names(root["directories"]) == ["docs"]
    assert _names(root["files"]) == ["readme.md"]

    docs = _list(client, auth_headers, sid, "/docs")
    assert docs["path"] == ["docs"]
    assert docs["prefix"] == "docs/"
    assert _names(docs["directories"]) == ["img"]
    assert docs["directories"][0]["type"] == "folder"
    assert _names(docs["files"]) == ["report.pdf"]
    assert docs["files"][0]["sizeText"] == "8 Bytes"

    down = client.get("/api/v1/files/download", params={"storageId": sid, "key": "docs/img/logo.png"}, headers=auth_headers)
    assert down.status_code == 200
    assert down.content == b"\x89PNG"

    deleted = client.delete("/api/v1/files", params={"storageId": sid, "key": "docs/"}, headers=auth_headers)
    assert deleted.status_code == 200
    assert deleted.json()["data"]["deleted"] == 4

    root = _list(client, auth_headers, sid)
    assert root["directories"] == []
    assert _names(root["files"]) == ["readme.md"]


def test_memory_mkdir_is_idempotent(client: TestClient, auth_headers, memory_storage_id):
    first = _mkdir(client, auth_headers, memory_storage_id, "/", "same")
    second = _mkdir(client, auth_headers, memory_storage_id, "/", "same")
    assert first.status_code == second.status_code == 200
    assert second.json()["data"]["key"] == "same/"
    assert len(_list(client, auth_headers, memory_storage_id)["directories"]) == 1


@pytest.mark.parametrize("name", ["a/b", "  ", ".."])
def test_mkdir_rejects_invalid_names(client: TestClient, auth_headers, memory_storage_id, name):
    resp = _mkdir(client, auth_headers, memory_storage_id, "/", name)
    assert resp.status_code == 400
    assert resp.json()["code"] == 400


def test_delete_root_is_rejected(client: TestClient, auth_headers, memory_storage_id):
    resp = client.delete("/api/v1/files", params={"storageId": memory_storage_id, "key": "/"}, headers=auth_headers)
    assert resp.status_code == 400


def test_unknown_storage_is_not_found(client: TestClient, auth_headers):
    resp = client.get("/api/v1/files", params={"storageId": 99999}, headers=auth_headers)
    assert resp.status_code == 404
    assert resp.json()["msg"] == "存储源不存在或已删除"


def test_upload_reports_per_file_results(client: TestClient, auth_headers, memory_storage_id, monkeypatch):
    monkeypatch.setattr(get_settings(), "max_upload_size_mb", 1)
    big = b"x" * (1024 * 1024 + 1)
    resp = _upload(client, auth_headers, memory_storage_id, "/", ("small.txt", b"ok"), ("big.bin", big))
    assert resp.status_code == 200
    results = resp.json()["data"]["results"]
    assert [r["status"] for r in results] == ["success", "error"]
    assert "大小限制" in results[1]["message"]

    # 失败的文件被跳过，已成功的不回滚
    assert _names(_list(client, auth_headers, memory_storage_id)["files"]) == ["small.txt"]


def test_upload_skips_invalid_filename_and_continues(db_session_fixture, local_storage_id):
    batch = [("first.txt", b"1", None), ("bad\x00name.txt", b"x", None), ("second.txt", b"2", None)]
    resp = file_service.upload_files(db_session_fixture, storage_id=local_storage_id, path="/", files=batch)

    results = resp["data"]["results"]
    assert [r["status"] for r in results] == ["success", "error", "success"]
    assert "控制字符" in results[1]["message"]
    assert "失败 1 个" in resp["msg"]

    listing = file_service.list_children(db_session_fixture, storage_id=local_storage_id, path="/")
    assert _names(listing["data"]["files"]) == ["first.txt", "second.txt"]


def test_download_url_for_memory_storage(client: TestClient, auth_headers, memory_storage_id):
    _upload(client, auth_headers, memory_storage_id, "/", ("note.txt", b"signed content"))
    resp = client.get(
        "/api/v1/files/download-url",
        params={"storageId": memory_storage_id, "key": "note.txt"},
        headers=auth_headers,
    )
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert "/api/v1/files/signed?t=" in data["url"]
    assert data["expiresAt"]

    # 直链无需登录
    fetched = client.get(data["url"])
    assert fetched.status_code == 200
    assert fetched.content == b"signed content"


def test_signed_download_rejects_garbage(client: TestClient):
    resp = client.get("/api/v1/files/signed", params={"t": "not-a-token"})
    assert resp.status_code == 404


def test_local_storage_flow(client: TestClient, auth_headers, local_storage_id, local_root):
    sid = local_storage_id
    assert _mkdir(client, auth_headers, sid, "/", "docs").status_code == 200

    conflict = _mkdir(client, auth_headers, sid, "/", "docs")
    assert conflict.status_code == 409
    assert conflict.json()["msg"] == "文件夹已存在"

    missing_parent = _mkdir(client, auth_headers, sid, "/nope", "child")
    assert missing_parent.status_code == 404

    up = _upload(client, auth_headers, sid, "/docs", ("a.txt", b"hello world"))
    assert up.json()["data"]["results"][0]["status"] == "success"
    assert os.path.isfile(os.path.join(local_root, "docs", "a.txt"))

    down = client.get("/api/v1/files/download", params={"storageId": sid, "key": "docs/a.txt"}, headers=auth_headers)
    assert down.status_code == 200
    assert down.content == b"hello world"

    gone = client.delete("/api/v1/files", params={"storageId": sid, "key": "docs/ghost.txt"}, headers=auth_headers)
    assert gone.status_code == 404

    dl = client.delete("/api/v1/files", params={"storageId": sid, "key": "docs/"}, headers=auth_headers)
    assert dl.status_code == 200
    assert not os.path.exists(os.path.join(local_root, "docs"))
    assert _list(client, auth_headers, sid)["directories"] == []


def test_default_storage_is_seeded(client: TestClient, auth_headers):
    resp = client.get("/api/v1/storage-configs", headers=auth_headers)
    assert resp.status_code == 200
    names = [item["name"] for item in resp.json()["data"]]
    assert get_settings().default_storage_name in names
