"""云存储配置服务：维护当前启用的存储提供方及七牛云、阿里云 OSS 的连接参数。

配置分别保存在 ``systemStorage``、``qiniuConfig``、``aliyunOssConfig`` 三个系统配置项中：
- 切换提供方不会清空其它提供方的配置；
- 更新时未提供（或为空）的密钥沿用已保存的值；
- 校验针对合并后的配置执行，校验失败时不写入任何内容。
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

from sqlalchemy.orm import Session

from app.packages.attachments.core.constants import (
    DEFAULT_ALIYUN_OSS_CONFIG,
    DEFAULT_QINIU_CONFIG,
    HTTP_STATUS_OK,
    OPTION_ALIYUN_OSS_CONFIG,
    OPTION_QINIU_CONFIG,
    OPTION_SYSTEM_STORAGE,
    QINIU_REGIONS,
    SECRET_FIELDS,
    STORAGE_EXPORT_FORMAT,
    STORAGE_EXPORT_VERSION,
)
from app.packages.attachments.core.enums import StorageProvider
from app.packages.attachments.core.exceptions import invalid_parameter
from app.packages.attachments.core.logger import logger
from app.packages.attachments.core.responses import create_response
from app.packages.attachments.core.timezone import isoformat_now
from app.packages.attachments.services.system_option_service import parse_json_object, system_option_service


@dataclass(frozen=True)
class DisabledStorage:
    provider: StorageProvider = StorageProvider.DISABLED


@dataclass(frozen=True)
class QiniuStorage:
    settings: Dict[str, Any] = field(default_factory=dict)
    provider: StorageProvider = StorageProvider.QINIU


@dataclass(frozen=True)
class AliyunOssStorage:
    settings: Dict[str, Any] = field(default_factory=dict)
    provider: StorageProvider = StorageProvider.ALIYUN_OSS


ActiveStorage = Union[DisabledStorage, QiniuStorage, AliyunOssStorage]

_OPTION_KEYS = {
    StorageProvider.QINIU: OPTION_QINIU_CONFIG,
    StorageProvider.ALIYUN_OSS: OPTION_ALIYUN_OSS_CONFIG,
}
_DEFAULTS = {
    StorageProvider.QINIU: DEFAULT_QINIU_CONFIG,
    StorageProvider.ALIYUN_OSS: DEFAULT_ALIYUN_OSS_CONFIG,
}
# 请求体中的提供方配置字段名
_PAYLOAD_FIELDS = {
    StorageProvider.QINIU: "qiniu",
    StorageProvider.ALIYUN_OSS: "aliyunOss",
}


def _text(value: Any) -> str:
    return str(value or "").strip()


def validate_qiniu(settings: Dict[str, Any]) -> None:
    required = ("accessKey", "secretKey", "bucket")
    if any(not _text(settings.get(key)) for key in required) or settings.get("region") not in QINIU_REGIONS:
        raise invalid_parameter("七牛云配置不完整")


def validate_aliyun_oss(settings: Dict[str, Any]) -> None:
    required = ("accessKeyId", "accessKeySecret", "bucket", "region")
    if any(not _text(settings.get(key)) for key in required):
        raise invalid_parameter("阿里云 OSS 配置不完整")


def to_active_storage(provider: StorageProvider, slots: Dict[StorageProvider, Dict[str, Any]]) -> ActiveStorage:
    """由选择器与各提供方配置还原出当前生效的存储描述。"""
    if provider == StorageProvider.QINIU:
        return QiniuStorage(settings=slots[StorageProvider.QINIU])
    if provider == StorageProvider.ALIYUN_OSS:
        return AliyunOssStorage(settings=slots[StorageProvider.ALIYUN_OSS])
    return DisabledStorage()


def validate_active_storage(active: ActiveStorage) -> None:
    if isinstance(active, QiniuStorage):
        validate_qiniu(active.settings)
    elif isinstance(active, AliyunOssStorage):
        validate_aliyun_oss(active.settings)


class StorageConfigService:
    """封装云存储配置的读取、更新、导入与导出。"""

    # ----------------------------
    # 读取
    # ----------------------------
    def load(self, db: Session) -> Dict[str, Any]:
        """读取完整配置（含密钥），缺失字段以默认值补齐。"""
        values = system_option_service.get_options(
            db, [OPTION_SYSTEM_STORAGE, OPTION_QINIU_CONFIG, OPTION_ALIYUN_OSS_CONFIG]
        )
        selector = _text(values.get(OPTION_SYSTEM_STORAGE)) or StorageProvider.DISABLED.selector
        try:
            provider = StorageProvider.from_selector(selector)
        except KeyError:
            logger.warning("Unknown storage selector %r, falling back to disabled", selector)
            provider = StorageProvider.DISABLED
        slots = {
            item: {**_DEFAULTS[item], **(parse_json_object(values.get(_OPTION_KEYS[item])) or {})}
            for item in _OPTION_KEYS
        }
        return {
            "provider": provider.value,
            "qiniu": slots[StorageProvider.QINIU],
            "aliyunOss": slots[StorageProvider.ALIYUN_OSS],
        }

    def active_storage(self, db: Session) -> ActiveStorage:
        config = self.load(db)
        provider = StorageProvider(config["provider"])
        return to_active_storage(
            provider,
            {StorageProvider.QINIU: config["qiniu"], StorageProvider.ALIYUN_OSS: config["aliyunOss"]},
        )

    def get_config(self, db: Session, *, include_secrets: bool = True) -> Dict[str, Any]:
        config = self.load(db)
        if not include_secrets:
            config = self._redact(config)
        return create_response("获取存储配置成功", config, HTTP_STATUS_OK)

    def export_config(self, db: Session) -> Dict[str, Any]:
        """导出完整配置，包含密钥，仅供有权限的管理员备份与迁移。"""
        config = self.load(db)
        payload = {
            "format": STORAGE_EXPORT_FORMAT,
            "version": STORAGE_EXPORT_VERSION,
            "exportedAt": isoformat_now(),
            **config,
        }
        return create_response("导出存储配置成功", payload, HTTP_STATUS_OK)

    # ----------------------------
    # 写入
    # ----------------------------
    def import_config(self, db: Session, payload: Dict[str, Any], actor_id: int) -> Dict[str, Any]:
        fmt = payload.get("format")
        if fmt is not None and fmt != STORAGE_EXPORT_FORMAT:
            raise invalid_parameter("配置文件格式不合法")
        version = payload.get("version")
        if version is not None and version > STORAGE_EXPORT_VERSION:
            raise invalid_parameter("配置文件版本不受支持")
        provider = self._apply(db, payload, actor_id)
        return create_response("导入存储配置成功", {"provider": provider.value}, HTTP_STATUS_OK)

    def upsert_config(
        self,
        db: Session,
        payload: Dict[str, Any],
        actor_id: int,
        *,
        include_secrets: bool = False,
    ) -> Dict[str, Any]:
        """保存配置并返回持久化后的结果，默认不回显密钥。"""
        self._apply(db, payload, actor_id)
        config = self.load(db)
        if not include_secrets:
            config = self._redact(config)
        return create_response("保存存储配置成功", config, HTTP_STATUS_OK)

    def _apply(self, db: Session, payload: Dict[str, Any], actor_id: int) -> StorageProvider:
        provider = self._validate_provider(payload.get("provider"))

        stored = self.load(db)
        merged: Dict[StorageProvider, Dict[str, Any]] = {}
        for item, field_name in _PAYLOAD_FIELDS.items():
            incoming = payload.get(field_name) or {}
            if not isinstance(incoming, dict):
                raise invalid_parameter(f"{field_name} 配置格式不合法")
            merged[item] = self._merge(stored[field_name], incoming, SECRET_FIELDS[_OPTION_KEYS[item]])

        # 合并后再校验，失败时不做任何写入
        validate_active_storage(to_active_storage(provider, merged))

        try:
            for item, option_key in _OPTION_KEYS.items():
                field_name = _PAYLOAD_FIELDS[item]
                if payload.get(field_name):
                    system_option_service.set_option(
                        db,
                        option_key,
                        json.dumps(merged[item], ensure_ascii=False),
                        actor_id,
                        auto_commit=False,
                    )
            system_option_service.set_option(db, OPTION_SYSTEM_STORAGE, provider.selector, actor_id, auto_commit=False)
            db.commit()
        except Exception:
            db.rollback()
            raise

        logger.info("Storage provider set to %s by user %s", provider.value, actor_id)
        return provider

    # ----------------------------
    # 工具方法
    # ----------------------------
    def _validate_provider(self, value: Any) -> StorageProvider:
        try:
            return StorageProvider(value)
        except ValueError:
            raise invalid_parameter("provider 参数不合法") from None

    def _merge(self, stored: Dict[str, Any], incoming: Dict[str, Any], secret_fields) -> Dict[str, Any]:
        """以已保存配置为底合并新值；密钥为空视为未提供。"""
        merged = dict(stored)
        for key, value in incoming.items():
            if key in secret_fields and not _text(value):
                continue
            merged[key] = value.strip() if isinstance(value, str) else value
        return merged

    def _redact(self, config: Dict[str, Any]) -> Dict[str, Any]:
        redacted = dict(config)
        for item, field_name in _PAYLOAD_FIELDS.items():
            blob = dict(config[field_name])
            for secret in SECRET_FIELDS[_OPTION_KEYS[item]]:
                blob.pop(secret, None)
            redacted[field_name] = blob
        return redacted


storage_config_service = StorageConfigService()
