"""入库流水线测试：并发去重、暂存清理、多存储后端与云端登记。"""

import io
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from app.packages.attachments.core.config import get_settings
from app.packages.attachments.core.enums import ErrorKind, StorageProvider
from app.packages.attachments.core.exceptions import BusinessError
from app.packages.attachments.crud.attachment import attachment_crud
from app.packages.attachments.models import Attachment
from app.packages.attachments.services.attachment_service import attachment_service
from app.packages.attachments.services.ingestion_service import IncomingFile, extract_ext, ingestion_service
from app.packages.attachments.services.storage_backends import (
    register_object_store_client,
    unregister_object_store_client,
)

ATTACHMENTS_URL = "/api/v1/attachments"
STORAGE_URL = "/api/v1/storage/config"

QINIU_SETTINGS = {
    "accessKey": "AK",
    "secretKey": "SK",
    "bucket": "media",
    "region": "z0",
    "domain": "cdn.example.com",
}


class FakeObjectStore:
    """记录写入与删除的对象存储客户端。"""

    def __init__(self, fail_on_put: bool = False):
        self.objects = {}
        self.deleted = []
        self.fail_on_put = fail_on_put

    def put_object(self, key, fileobj, content_type):
        if self.fail_on_put:
            raise RuntimeError("bucket unreachable")
        self.objects[key] = (fileobj.read(), content_type)

    def delete_object(self, key):
        self.deleted.append(key)
        self.objects.pop(key, None)


class BrokenStream(io.RawIOBase):
    """读取若干字节后抛出 ``OSError`` 的上传流。"""

    def __init__(self):
        self.calls = 0

    def readable(self):
        return True

    def read(self, size=-1):
        self.calls += 1
        if self.calls > 1:
            raise OSError("connection reset")
        return b"partial"


class DisconnectingStream(BrokenStream):
    """模拟客户端中途断开：抛出的不是 ``OSError``。"""

    def read(self, size=-1):
        self.calls += 1
        if self.calls > 1:
            raise RuntimeError("client disconnected")
        return b"partial"


def _tmp_files() -> list:
    tmp_dir = Path(get_settings().upload_tmp_directory)
    if not tmp_dir.exists():
        return []
    return list(tmp_dir.iterdir())


def _local_files() -> list:
    upload_dir = Path(get_settings().upload_directory)
    return [item for item in upload_dir.iterdir() if item.is_file()]


def _upload(client: TestClient, headers: dict, filename: str, content: bytes, mime: str = "text/plain") -> dict:
    response = client.post(ATTACHMENTS_URL, headers=headers, files=[("files", (filename, content, mime))])
    assert response.status_code == 200, response.json()
    return response.json()["data"][0]


def _enable_qiniu(client: TestClient, headers: dict) -> None:
    response = client.put(STORAGE_URL, headers=headers, json={"provider": "qiniu", "qiniu": QINIU_SETTINGS})
    assert response.status_code == 200, response.json()


@pytest.mark.parametrize(
    "name, expected",
    [("photo.JPG", ".jpg"), ("archive.tar.gz", ".gz"), ("README", ""), ("x." + "a" * 20, "")],
)
def test_extract_ext(name, expected):
    assert extract_ext(name) == expected


def test_concurrent_duplicate_reuses_winner(client: TestClient, auth_headers, monkeypatch):
    content = b"raced bytes"
    winner = _upload(client, auth_headers, "first.txt", content)["attachment"]

    original_lookup = attachment_crud.get_by_hash
    calls = {"count": 0}

    def stale_lookup(db, hash, storage=None):
        # 首次查重模拟另一请求尚未提交的时间窗口
        calls["count"] += 1
        if calls["count"] == 1:
            return None
        return original_lookup(db, hash, storage)

    monkeypatch.setattr(attachment_crud, "get_by_hash", stale_lookup)

    loser = _upload(client, auth_headers, "second.txt", content)
    assert loser["status"] == "success"
    assert loser["reused"] is True
    assert loser["attachment"]["id"] == winner["id"]
    assert calls["count"] == 2

    # 失败方落盘的字节被清理，只保留胜出者的文件
    assert [item.name for item in _local_files()] == [winner["filename"]]
    assert _tmp_files() == []


def test_stage_failure_removes_temp_file():
    with pytest.raises(BusinessError) as exc_info:
        ingestion_service.stage(BrokenStream())
    assert exc_info.value.kind == ErrorKind.IO_ERROR
    assert _tmp_files() == []


def test_stage_reports_disconnect_as_io_error():
    with pytest.raises(BusinessError) as exc_info:
        ingestion_service.stage(DisconnectingStream())
    assert exc_info.value.kind == ErrorKind.IO_ERROR
    assert exc_info.value.biz_code == 32622
    assert _tmp_files() == []


def test_stage_computes_digest_and_size():
    staged = ingestion_service.stage(io.BytesIO(b"abc"))
    try:
        assert staged.size == 3
        assert staged.hash == "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"
        assert staged.path.read_bytes() == b"abc"
    finally:
        staged.path.unlink()


def test_batch_isolates_failing_file(db_session_fixture):
    results = ingestion_service.ingest_batch(
        db_session_fixture,
        [
            IncomingFile(stream=BrokenStream(), original_name="broken.bin"),
            IncomingFile(stream=DisconnectingStream(), original_name="cut.bin"),
            IncomingFile(stream=io.BytesIO(b"healthy"), original_name="ok.txt", content_type="text/plain"),
        ],
        folder_id=None,
        kind=None,
        name=None,
        actor_id=7,
        serializer=attachment_service.serialize_attachment,
    )
    assert results[0]["status"] == "failure"
    assert results[0]["error"]["kind"] == "IO_ERROR"
    assert results[0]["error"]["code"] == 32622
    assert results[1]["status"] == "failure"
    assert results[1]["error"]["kind"] == "IO_ERROR"
    assert results[2]["status"] == "success"
    assert results[2]["attachment"]["originalName"] == "ok.txt"
    assert _tmp_files() == []
    assert db_session_fixture.query(Attachment).count() == 1


def test_cloud_provider_without_client_is_unavailable(client: TestClient, auth_headers):
    register_object_store_client(StorageProvider.QINIU, lambda config: FakeObjectStore())
    unregister_object_store_client(StorageProvider.QINIU)
    _enable_qiniu(client, auth_headers)

    response = client.post(
        ATTACHMENTS_URL,
        headers=auth_headers,
        files=[("files", ("a.txt", b"a", "text/plain")), ("files", ("b.txt", b"b", "text/plain"))],
    )
    assert response.status_code == 200
    results = response.json()["data"]
    assert len(results) == 2
    for item in results:
        assert item["status"] == "failure"
        assert item["error"]["kind"] == "STORAGE_UNAVAILABLE"
        assert item["error"]["code"] == 32621
    assert _tmp_files() == []


def test_same_bytes_on_different_backends_are_independent(client: TestClient, auth_headers):
    store = FakeObjectStore()
    seen_configs = []

    def factory(config):
        seen_configs.append(config)
        return store

    register_object_store_client(StorageProvider.QINIU, factory)
    content = b"shared across backends"

    local = _upload(client, auth_headers, "shared.png", content, "image/png")["attachment"]
    assert local["storage"] == "local"

    _enable_qiniu(client, auth_headers)
    remote = _upload(client, auth_headers, "shared.png", content, "image/png")
    assert remote["reused"] is False
    attachment = remote["attachment"]
    assert attachment["id"] != local["id"]
    assert attachment["storage"] == "qiniu"
    assert attachment["hash"] == local["hash"]
    assert attachment["objectKey"].startswith("uploads/")
    assert attachment["objectKey"].endswith(attachment["filename"])
    assert attachment["url"] == f"https://cdn.example.com/{attachment['objectKey']}"
    assert store.objects[attachment["objectKey"]] == (content, "image/png")
    assert seen_configs[-1]["secretKey"] == "SK"

    again = _upload(client, auth_headers, "shared-again.png", content, "image/png")
    assert again["reused"] is True
    assert again["attachment"]["id"] == attachment["id"]


def test_object_store_failure_is_reported_per_file(client: TestClient, auth_headers, db_session_fixture):
    register_object_store_client(StorageProvider.QINIU, lambda config: FakeObjectStore(fail_on_put=True))
    _enable_qiniu(client, auth_headers)

    result = _upload(client, auth_headers, "lost.txt", b"lost")
    assert result["status"] == "failure"
    assert result["error"]["kind"] == "IO_ERROR"
    assert db_session_fixture.query(Attachment).count() == 0
    assert _tmp_files() == []


def test_register_cloud_attachment(client: TestClient, auth_headers):
    _enable_qiniu(client, auth_headers)
    body = {
        "objectKey": "uploads/2024/05/banner.png",
        "originalName": "banner.png",
        "size": 2048,
        "hash": "f" * 64,
        "extra": {"etag": "Fh8x"},
    }
    response = client.post(f"{ATTACHMENTS_URL}/cloud", headers=auth_headers, json=body)
    assert response.status_code == 200, response.json()
    data = response.json()["data"]
    assert data["reused"] is False
    attachment = data["attachment"]
    assert attachment["storage"] == "qiniu"
    assert attachment["kind"] == "image"
    assert attachment["mimeType"] == "image/png"
    assert attachment["filename"] == "banner.png"
    assert attachment["url"] == "https://cdn.example.com/uploads/2024/05/banner.png"
    assert attachment["extra"] == {"etag": "Fh8x"}

    repeat = client.post(f"{ATTACHMENTS_URL}/cloud", headers=auth_headers, json=body)
    assert repeat.json()["data"]["reused"] is True
    assert repeat.json()["data"]["attachment"]["id"] == attachment["id"]


def test_register_cloud_attachment_rejects_local_storage(client: TestClient, auth_headers):
    response = client.post(
        f"{ATTACHMENTS_URL}/cloud",
        headers=auth_headers,
        json={"objectKey": "a/b.png", "originalName": "b.png", "storage": "local"},
    )
    assert response.status_code == 400
    assert response.json()["kind"] == "INVALID_PARAMETER"
