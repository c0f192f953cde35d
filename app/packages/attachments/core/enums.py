"""枚举定义：素材类型、状态、存储位置与错误分类。"""

from enum import Enum


class ErrorKind(str, Enum):
    """业务错误分类，HTTP 层据此映射状态码。"""

    NOT_FOUND = "NOT_FOUND"
    ALREADY_EXISTS = "ALREADY_EXISTS"
    DELETE_FORBIDDEN = "DELETE_FORBIDDEN"
    INVALID_PARAMETER = "INVALID_PARAMETER"
    IO_ERROR = "IO_ERROR"
    STORAGE_UNAVAILABLE = "STORAGE_UNAVAILABLE"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class AttachmentKind(str, Enum):
    IMAGE = "image"
    AUDIO = "audio"
    VIDEO = "video"
    OTHER = "other"


class FolderKind(str, Enum):
    """分组适用的素材类型，``all`` 表示不限。"""

    ALL = "all"
    IMAGE = "image"
    AUDIO = "audio"
    VIDEO = "video"
    OTHER = "other"


class StatusEnum(str, Enum):
    ENABLED = "enabled"
    DISABLED = "disabled"


class StorageLocation(str, Enum):
    """素材字节实际所在的位置。"""

    LOCAL = "local"
    QINIU = "qiniu"
    ALIYUN_OSS = "aliyunOss"


class StorageProvider(str, Enum):
    """系统当前启用的云存储提供方；``disabled`` 表示仅使用本地存储。"""

    DISABLED = "disabled"
    QINIU = "qiniu"
    ALIYUN_OSS = "aliyunOss"

    @property
    def selector(self) -> str:
        """持久化在 ``systemStorage`` 中的编码值。"""
        return _PROVIDER_TO_SELECTOR[self]

    @classmethod
    def from_selector(cls, value: str) -> "StorageProvider":
        return _SELECTOR_TO_PROVIDER[value]


_PROVIDER_TO_SELECTOR = {
    StorageProvider.DISABLED: "0",
    StorageProvider.QINIU: "1",
    StorageProvider.ALIYUN_OSS: "2",
}
_SELECTOR_TO_PROVIDER = {value: key for key, value in _PROVIDER_TO_SELECTOR.items()}
