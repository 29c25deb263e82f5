"""存储后端测试：本地文件系统与 S3（以内存桶模拟 boto3 客户端）。"""

import os

import pytest
from botocore.exceptions import ClientError

from app.packages.drive.core.exceptions import AlreadyExistsError, NotFoundError, UpstreamError, ValidationError
from app.packages.drive.services.namespace import NamespaceMaterializer
from app.packages.drive.services.storage_backends import (
    LocalBackend,
    MemoryBackend,
    S3Backend,
    build_backend,
    get_memory_backend,
)


class FakeS3Client:
    """实现 S3Backend 用到的最小 boto3 接口，数据放在 MemoryBackend 中。"""

    def __init__(self, page_size=None):
        self.bucket = MemoryBackend(page_size=page_size)
        self.calls: list[str] = []

    @staticmethod
    def _not_found(op: str) -> ClientError:
        return ClientError({"Error": {"Code": "404", "Message": "Not Found"}}, op)

    def list_objects_v2(self, Bucket, Prefix="", Delimiter=None, ContinuationToken=None, MaxKeys=None):
        self.calls.append("list_objects_v2")
        page = self.bucket.list(
            prefix=Prefix, delimiter=Delimiter, continuation_token=ContinuationToken, max_keys=MaxKeys
        )
        resp = {
            "IsTruncated": page.is_truncated,
            "Contents": [
                {"Key": o.key, "Size": o.size, "LastModified": o.last_modified} for o in page.objects
            ],
            "CommonPrefixes": [{"Prefix": p} for p in page.common_prefixes],
        }
        if page.next_token:
            resp["NextContinuationToken"] = page.next_token
        return resp

    def head_object(self, Bucket, Key):
        obj = self.bucket.head(key=Key)
        if obj is None:
            raise self._not_found("HeadObject")
        return {"ContentLength": obj.size, "LastModified": obj.last_modified, "ContentType": obj.content_type}

    def get_object(self, Bucket, Key):
        if self.bucket.head(key=Key) is None:
            raise ClientError({"Error": {"Code": "NoSuchKey", "Message": "missing"}}, "GetObject")

        class _Body:
            def __init__(self, data):
                self._data = data

            def read(self):
                return self._data

        return {"Body": _Body(self.bucket.get(key=Key))}

    def put_object(self, Bucket, Key, Body, ContentType=None):
        self.bucket.put(key=Key, body=Body, content_type=ContentType)
        return {}

    def delete_object(self, Bucket, Key):
        self.bucket.delete(key=Key)
        return {}

    def delete_objects(self, Bucket, Delete):
        self.calls.append("delete_objects")
        self.bucket.delete_many(keys=[o["Key"] for o in Delete["Objects"]])
        return {}

    def generate_presigned_url(self, operation, Params, ExpiresIn):
        return f"https://s3.example.com/{Params['Bucket']}/{Params['Key']}?expires={ExpiresIn}"


# ------------------------------------------
# LOCAL
# ------------------------------------------


def test_local_listing_and_round_trip(local_root: str):
    backend = LocalBackend(local_root)
    ns = NamespaceMaterializer(backend)
    ns.create_directory([], "docs")
    ns.create_directory(["docs"], "img")
    ns.create_file(["docs"], "report.pdf", b"%PDF")
    ns.create_file(["docs", "img"], "logo.png", b"png")
    ns.create_file([], "readme.md", b"# hi")

    root = ns.list_children([])
    assert [d.name for d in root.directories] == ["docs"]
    assert [f.name for f in root.files] == ["readme.md"]

    docs = ns.list_children(["docs"])
    assert [d.name for d in docs.directories] == ["img"]
    assert [f.name for f in docs.files] == ["report.pdf"]
    assert docs.files[0].size == 4

    assert backend.get(key="docs/img/logo.png") == b"png"
    assert os.path.isfile(os.path.join(local_root, "docs", "report.pdf"))


def test_local_mkdir_conflict_and_missing_parent(local_root: str):
    ns = NamespaceMaterializer(LocalBackend(local_root))
    ns.create_directory([], "docs")
    with pytest.raises(AlreadyExistsError):
        ns.create_directory([], "docs")
    with pytest.raises(NotFoundError):
        ns.create_directory(["missing"], "child")
    with pytest.raises(NotFoundError):
        ns.create_file(["missing"], "a.txt", b"a")


def test_local_delete_directory_recursively(local_root: str):
    backend = LocalBackend(local_root)
    ns = NamespaceMaterializer(backend)
    ns.create_directory([], "docs")
    ns.create_directory(["docs"], "img")
    ns.create_file(["docs", "img"], "logo.png", b"png")
    ns.create_file([], "readme.md", b"# hi")

    deleted = ns.delete_item("docs/")
    assert "docs/" in deleted
    assert "docs/img/logo.png" in deleted
    assert not os.path.exists(os.path.join(local_root, "docs"))
    assert [f.name for f in ns.list_children([]).files] == ["readme.md"]


def test_local_delete_missing_is_not_found(local_root: str):
    ns = NamespaceMaterializer(LocalBackend(local_root))
    with pytest.raises(NotFoundError):
        ns.delete_item("ghost.txt")
    with pytest.raises(NotFoundError):
        ns.delete_item("ghost/")


def test_local_rejects_path_traversal(local_root: str):
    backend = LocalBackend(local_root)
    with pytest.raises(ValidationError):
        backend.head(key="../outside.txt")
    with pytest.raises(ValidationError):
        backend.head(key="a\x00b.txt")


@pytest.mark.skipif(not hasattr(os, "symlink"), reason="需要符号链接支持")
def test_local_listing_skips_dangling_symlinks(local_root: str):
    ns = NamespaceMaterializer(LocalBackend(local_root))
    ns.create_directory([], "docs")
    ns.create_file([], "ok.txt", b"ok")
    ns.create_file(["docs"], "keep.txt", b"k")
    os.symlink(os.path.join(local_root, "gone.txt"), os.path.join(local_root, "dangling"))
    os.symlink(os.path.join(local_root, "gone.txt"), os.path.join(local_root, "docs", "dangling"))

    root = ns.list_children([])
    assert [f.name for f in root.files] == ["ok.txt"]
    assert [d.name for d in root.directories] == ["docs"]

    # 含失效链接的目录仍可整体删除
    deleted = ns.delete_item("docs/")
    assert "docs/keep.txt" in deleted
    assert not os.path.lexists(os.path.join(local_root, "docs"))


# ------------------------------------------
# S3
# ------------------------------------------


def test_s3_listing_with_prefix_and_pagination():
    client = FakeS3Client(page_size=2)
    backend = S3Backend(bucket="bucket", prefix="tenant", client=client)
    ns = NamespaceMaterializer(backend)
    for key in ["docs/", "docs/report.pdf", "docs/img/", "docs/img/logo.png", "readme.md", "a.txt", "b.txt"]:
        backend.put(key=key, body=b"" if key.endswith("/") else b"data")

    # 所有对象都落在 tenant/ 之下
    assert client.bucket.head(key="tenant/readme.md") is not None

    root = ns.list_children([])
    assert sorted(d.key for d in root.directories) == ["docs/"]
    assert sorted(f.name for f in root.files) == ["a.txt", "b.txt", "readme.md"]
    assert client.calls.count("list_objects_v2") >= 2


def test_s3_recursive_delete_batches_until_empty():
    client = FakeS3Client(page_size=3)
    backend = S3Backend(bucket="bucket", client=client)
    for i in range(8):
        backend.put(key=f"logs/{i}.txt", body=b"x")
    backend.put(key="keep.txt", body=b"y")

    deleted = NamespaceMaterializer(backend).delete_item("logs/")
    assert len(deleted) == 8
    assert client.calls.count("delete_objects") == 3
    assert [o.key for o in backend.list(prefix="", delimiter=None).objects] == ["keep.txt"]


def test_s3_head_missing_and_presign():
    backend = S3Backend(bucket="bucket", prefix="p/", client=FakeS3Client())
    assert backend.head(key="nothing.txt") is None
    with pytest.raises(NotFoundError):
        backend.get(key="nothing.txt")
    url = backend.presign(key="docs/a.txt", expires_in=60)
    assert url.startswith("https://s3.example.com/bucket/p/docs/a.txt")


def test_s3_client_errors_become_upstream_errors():
    class BrokenClient(FakeS3Client):
        def list_objects_v2(self, **kwargs):
            raise ClientError({"Error": {"Code": "AccessDenied", "Message": "denied"}}, "ListObjectsV2")

    backend = S3Backend(bucket="bucket", client=BrokenClient())
    with pytest.raises(UpstreamError):
        NamespaceMaterializer(backend).list_children([])


# ------------------------------------------
# build_backend
# ------------------------------------------


def test_build_backend_dispatch(local_root: str):
    assert isinstance(build_backend(type="local", local_root_path=local_root), LocalBackend)
    memory = build_backend(type="MEMORY", memory_key=987)
    assert memory is get_memory_backend(987)
    with pytest.raises(ValidationError):
        build_backend(type="FTP")
    with pytest.raises(ValidationError):
        build_backend(type="S3")
