"""存储后端抽象与实现：统一封装本地磁盘与对象存储的落盘操作。"""

from __future__ import annotations

import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Callable, Dict, Optional, Protocol

from app.packages.attachments.core.config import get_settings
from app.packages.attachments.core.enums import StorageLocation, StorageProvider
from app.packages.attachments.core.exceptions import invalid_parameter, io_error, storage_unavailable
from app.packages.attachments.core.logger import logger
from app.packages.attachments.core.timezone import month_partition


@dataclass
class StoredObject:
    """字节最终落点的描述，写入素材记录时使用。"""

    storage: str
    filename: str
    path: Optional[str]
    url: Optional[str]
    object_key: Optional[str]


class ObjectStoreClient(Protocol):
    """对象存储客户端协议，由部署方注入具体 SDK 的封装。"""

    def put_object(self, key: str, fileobj: BinaryIO, content_type: Optional[str]) -> None:
        ...

    def delete_object(self, key: str) -> None:
        ...


ObjectStoreClientFactory = Callable[[dict], ObjectStoreClient]

_client_factories: Dict[StorageProvider, ObjectStoreClientFactory] = {}


def register_object_store_client(provider: StorageProvider, factory: ObjectStoreClientFactory) -> None:
    """为云存储提供方注册客户端工厂，工厂接收当前生效的提供方配置。"""
    if provider == StorageProvider.DISABLED:
        raise ValueError("disabled provider does not take an object store client")
    _client_factories[provider] = factory


def unregister_object_store_client(provider: StorageProvider) -> None:
    _client_factories.pop(provider, None)


class StorageBackend:
    """存储后端接口。"""

    location: str

    def store(self, *, staged_path: Path, filename: str, mime_type: Optional[str]) -> StoredObject:
        raise NotImplementedError

    def remove(self, stored: StoredObject) -> None:
        raise NotImplementedError


# ------------------------------------------
# 本地文件系统实现
# ------------------------------------------


class LocalBackend(StorageBackend):
    location = StorageLocation.LOCAL.value

    def __init__(self, root: Path, *, url_base: str, path_base: str):
        self.root = Path(root).resolve()
        self.url_base = url_base.rstrip("/")
        self.path_base = path_base.strip("/")
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:  # pragma: no cover - 极端情况下可能失败
            raise io_error(f"无法创建本地上传目录: {exc}") from exc

    # 统一的安全路径拼接，防止路径遍历
    def _resolve(self, rel: str) -> Path:
        rel_norm = rel.strip().lstrip("/")
        candidate = (self.root / rel_norm).resolve()
        try:
            candidate.relative_to(self.root)
        except ValueError as exc:
            raise invalid_parameter("非法路径: 越权访问") from exc
        return candidate

    def store(self, *, staged_path: Path, filename: str, mime_type: Optional[str]) -> StoredObject:
        target = self._resolve(filename)
        try:
            shutil.move(str(staged_path), str(target))
        except OSError as exc:
            raise io_error(f"素材写入失败: {exc}") from exc
        return StoredObject(
            storage=self.location,
            filename=filename,
            path=f"{self.path_base}/{filename}" if self.path_base else filename,
            url=f"{self.url_base}/{filename}",
            object_key=None,
        )

    def remove(self, stored: StoredObject) -> None:
        target = self._resolve(stored.filename)
        try:
            if target.exists():
                os.remove(target)
        except OSError as exc:  # pragma: no cover - 清理失败仅记录
            logger.warning("Failed to remove local file %s: %s", target, exc)


# ------------------------------------------
# 对象存储实现（七牛云 / 阿里云 OSS）
# ------------------------------------------


class ObjectStoreBackend(StorageBackend):
    def __init__(self, *, location: str, client: ObjectStoreClient, config: dict, prefix: Optional[str] = None):
        self.location = location
        self.client = client
        self.config = config
        self.prefix = (prefix or "").strip("/")

    # 对象 key：<prefix>/<YYYY>/<MM>/<filename>
    def _join_key(self, filename: str) -> str:
        parts = [self.prefix, month_partition(), filename]
        return "/".join(part for part in parts if part)

    def public_url(self, key: str) -> Optional[str]:
        return build_public_url(self.config, key)

    def store(self, *, staged_path: Path, filename: str, mime_type: Optional[str]) -> StoredObject:
        key = self._join_key(filename)
        try:
            with open(staged_path, "rb") as fh:
                self.client.put_object(key, fh, mime_type)
        except Exception as exc:  # SDK 异常类型各异，统一转换为 IO 错误
            raise io_error(f"素材上传失败: {exc}") from exc
        return StoredObject(
            storage=self.location,
            filename=filename,
            path=key,
            url=self.public_url(key),
            object_key=key,
        )

    def remove(self, stored: StoredObject) -> None:
        if not stored.object_key:
            return
        try:
            self.client.delete_object(stored.object_key)
        except Exception as exc:  # pragma: no cover - 清理失败仅记录
            logger.warning("Failed to remove object %s: %s", stored.object_key, exc)


def build_public_url(config: dict, key: str) -> Optional[str]:
    """依据提供方配置中的 ``domain`` 与 ``useHttps`` 拼接对象的访问地址。"""
    domain = (config.get("domain") or "").strip()
    if not domain:
        return None
    for scheme in ("https://", "http://"):
        if domain.lower().startswith(scheme):
            domain = domain[len(scheme):]
            break
    scheme = "https" if config.get("useHttps", True) else "http"
    return f"{scheme}://{domain.rstrip('/')}/{key.lstrip('/')}"


_PROVIDER_LOCATIONS = {
    StorageProvider.QINIU: StorageLocation.QINIU.value,
    StorageProvider.ALIYUN_OSS: StorageLocation.ALIYUN_OSS.value,
}


def build_local_backend() -> LocalBackend:
    settings = get_settings()
    return LocalBackend(
        settings.upload_directory,
        url_base=settings.upload_url_prefix,
        path_base=settings.upload_dir.replace("\\", "/"),
    )


def build_backend(*, provider: StorageProvider, config: Optional[dict] = None) -> StorageBackend:
    """根据当前启用的提供方构造存储后端；云端未注册客户端时抛出 ``STORAGE_UNAVAILABLE``。"""
    if provider == StorageProvider.DISABLED:
        return build_local_backend()
    factory = _client_factories.get(provider)
    if factory is None:
        raise storage_unavailable(f"存储提供方 {provider.value} 未配置客户端，暂不可用")
    settings = get_settings()
    return ObjectStoreBackend(
        location=_PROVIDER_LOCATIONS[provider],
        client=factory(config or {}),
        config=config or {},
        prefix=settings.cloud_object_prefix,
    )
