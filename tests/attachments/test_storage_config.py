"""云存储配置的读写、导入导出测试。"""

import json

from fastapi.testclient import TestClient

from app.packages.attachments.core.constants import OPTION_ALIYUN_OSS_CONFIG, OPTION_QINIU_CONFIG, OPTION_SYSTEM_STORAGE
from app.packages.attachments.services.system_option_service import system_option_service

CONFIG_URL = "/api/v1/storage/config"
EXPORT_URL = "/api/v1/storage/export"
IMPORT_URL = "/api/v1/storage/import"

QINIU = {"accessKey": "AK1", "secretKey": "S1", "bucket": "assets", "region": "z2", "domain": "img.example.com"}
ALIYUN = {
    "accessKeyId": "LTAI",
    "accessKeySecret": "OSS-SECRET",
    "bucket": "oss-assets",
    "region": "oss-cn-hangzhou",
    "endpoint": "oss-cn-hangzhou.aliyuncs.com",
}


def _stored(db, key: str):
    db.expire_all()
    return system_option_service.get_option(db, key)


def _put(client: TestClient, headers: dict, body: dict):
    return client.put(CONFIG_URL, headers=headers, json=body)


def test_default_config_is_disabled(client: TestClient, auth_headers):
    response = client.get(CONFIG_URL, headers=auth_headers)
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["provider"] == "disabled"
    assert data["qiniu"]["region"] == "z0"
    assert "secretKey" not in data["qiniu"]
    assert "accessKeySecret" not in data["aliyunOss"]


def test_upsert_redacts_secrets_and_persists_them(client: TestClient, auth_headers, db_session_fixture):
    response = _put(client, auth_headers, {"provider": "qiniu", "qiniu": QINIU})
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["provider"] == "qiniu"
    assert data["qiniu"]["accessKey"] == "AK1"
    assert "secretKey" not in data["qiniu"]

    assert _stored(db_session_fixture, OPTION_SYSTEM_STORAGE) == "1"
    assert json.loads(_stored(db_session_fixture, OPTION_QINIU_CONFIG))["secretKey"] == "S1"

    fetched = client.get(CONFIG_URL, headers=auth_headers).json()["data"]
    assert "secretKey" not in fetched["qiniu"]


def test_omitted_or_blank_secret_keeps_stored_value(client: TestClient, auth_headers, db_session_fixture):
    assert _put(client, auth_headers, {"provider": "qiniu", "qiniu": QINIU}).status_code == 200

    omitted = {key: value for key, value in QINIU.items() if key != "secretKey"}
    omitted["bucket"] = "assets-v2"
    assert _put(client, auth_headers, {"provider": "qiniu", "qiniu": omitted}).status_code == 200

    blank = dict(omitted, secretKey="   ")
    assert _put(client, auth_headers, {"provider": "qiniu", "qiniu": blank}).status_code == 200

    stored = json.loads(_stored(db_session_fixture, OPTION_QINIU_CONFIG))
    assert stored["secretKey"] == "S1"
    assert stored["bucket"] == "assets-v2"


def test_supplied_secret_overwrites(client: TestClient, auth_headers, db_session_fixture):
    assert _put(client, auth_headers, {"provider": "qiniu", "qiniu": QINIU}).status_code == 200
    assert _put(client, auth_headers, {"provider": "qiniu", "qiniu": {"secretKey": "S2"}}).status_code == 200

    stored = json.loads(_stored(db_session_fixture, OPTION_QINIU_CONFIG))
    assert stored["secretKey"] == "S2"
    assert stored["accessKey"] == "AK1"


def test_invalid_provider_is_rejected(client: TestClient, auth_headers):
    response = _put(client, auth_headers, {"provider": "s3"})
    assert response.status_code == 400
    assert response.json()["kind"] == "INVALID_PARAMETER"
    assert response.json()["msg"] == "provider 参数不合法"


def test_incomplete_config_writes_nothing(client: TestClient, auth_headers, db_session_fixture):
    before = {
        key: _stored(db_session_fixture, key)
        for key in (OPTION_SYSTEM_STORAGE, OPTION_QINIU_CONFIG, OPTION_ALIYUN_OSS_CONFIG)
    }

    response = _put(client, auth_headers, {"provider": "qiniu", "qiniu": {"accessKey": "AK", "bucket": "b"}})
    assert response.status_code == 400
    assert response.json()["msg"] == "七牛云配置不完整"

    bad_region = dict(QINIU, region="mars-1")
    assert _put(client, auth_headers, {"provider": "qiniu", "qiniu": bad_region}).status_code == 400

    response = _put(client, auth_headers, {"provider": "aliyunOss", "aliyunOss": {"bucket": "only"}})
    assert response.status_code == 400
    assert response.json()["msg"] == "阿里云 OSS 配置不完整"

    after = {key: _stored(db_session_fixture, key) for key in before}
    assert after == before


def test_switching_provider_keeps_other_settings(client: TestClient, auth_headers, db_session_fixture):
    assert _put(client, auth_headers, {"provider": "qiniu", "qiniu": QINIU}).status_code == 200
    assert _put(client, auth_headers, {"provider": "aliyunOss", "aliyunOss": ALIYUN}).status_code == 200

    assert _stored(db_session_fixture, OPTION_SYSTEM_STORAGE) == "2"
    assert json.loads(_stored(db_session_fixture, OPTION_QINIU_CONFIG))["secretKey"] == "S1"

    disabled = _put(client, auth_headers, {"provider": "disabled"})
    assert disabled.status_code == 200
    data = disabled.json()["data"]
    assert data["provider"] == "disabled"
    assert data["qiniu"]["bucket"] == "assets"
    assert data["aliyunOss"]["bucket"] == "oss-assets"
    assert _stored(db_session_fixture, OPTION_SYSTEM_STORAGE) == "0"


def test_export_contains_secrets(client: TestClient, auth_headers):
    assert _put(client, auth_headers, {"provider": "aliyunOss", "aliyunOss": ALIYUN}).status_code == 200

    response = client.get(EXPORT_URL, headers=auth_headers)
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["format"] == "yishan.storage.config"
    assert data["version"] == 1
    assert data["exportedAt"]
    assert data["provider"] == "aliyunOss"
    assert data["aliyunOss"]["accessKeySecret"] == "OSS-SECRET"


def test_import_round_trips_export(client: TestClient, auth_headers, db_session_fixture):
    assert _put(client, auth_headers, {"provider": "qiniu", "qiniu": QINIU}).status_code == 200
    exported = client.get(EXPORT_URL, headers=auth_headers).json()["data"]

    assert _put(client, auth_headers, {"provider": "qiniu", "qiniu": {"secretKey": "rotated"}}).status_code == 200

    response = client.post(IMPORT_URL, headers=auth_headers, json=exported)
    assert response.status_code == 200
    assert response.json()["data"] == {"provider": "qiniu"}
    assert json.loads(_stored(db_session_fixture, OPTION_QINIU_CONFIG))["secretKey"] == "S1"


def test_import_rejects_foreign_format(client: TestClient, auth_headers):
    response = client.post(IMPORT_URL, headers=auth_headers, json={"format": "other.tool", "provider": "disabled"})
    assert response.status_code == 400
    assert response.json()["msg"] == "配置文件格式不合法"

    response = client.post(
        IMPORT_URL,
        headers=auth_headers,
        json={"format": "yishan.storage.config", "version": 99, "provider": "disabled"},
    )
    assert response.status_code == 400
    assert response.json()["msg"] == "配置文件版本不受支持"
