"""云存储配置相关的请求与响应模型。"""

from __future__ import annotations

from typing import Optional

from pydantic import Field

from app.packages.attachments.api.v1.schemas.common import CamelModel, ResponseEnvelope


class QiniuSettings(CamelModel):
    """七牛云配置，全部字段可选；未提交的字段沿用已保存的值。"""

    access_key: Optional[str] = None
    secret_key: Optional[str] = None
    bucket: Optional[str] = None
    region: Optional[str] = None
    domain: Optional[str] = None
    use_https: Optional[bool] = None
    use_cdn_domains: Optional[bool] = None
    token_expires: Optional[int] = Field(default=None, ge=1)
    callback_url: Optional[str] = None
    upload_host: Optional[str] = None


class AliyunOssSettings(CamelModel):
    access_key_id: Optional[str] = None
    access_key_secret: Optional[str] = None
    bucket: Optional[str] = None
    region: Optional[str] = None
    endpoint: Optional[str] = None
    domain: Optional[str] = None
    use_https: Optional[bool] = None


class StorageConfigPayload(CamelModel):
    # provider 在服务层校验，以便返回统一的业务错误
    provider: str
    qiniu: Optional[QiniuSettings] = None
    aliyun_oss: Optional[AliyunOssSettings] = None


class StorageImportPayload(StorageConfigPayload):
    """导入文件结构，与导出结果一致，``format``/``version`` 可省略。"""

    format: Optional[str] = None
    version: Optional[int] = None
    exported_at: Optional[str] = None


class StorageConfigData(CamelModel):
    provider: str
    qiniu: dict
    aliyun_oss: dict


class StorageExportData(StorageConfigData):
    format: str
    version: int
    exported_at: str


class StorageImportResult(CamelModel):
    provider: str


StorageConfigResponse = ResponseEnvelope[StorageConfigData]
StorageExportResponse = ResponseEnvelope[StorageExportData]
StorageImportResponse = ResponseEnvelope[StorageImportResult]
