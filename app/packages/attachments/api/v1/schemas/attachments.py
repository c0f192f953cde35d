"""素材分组与素材相关的请求与响应模型。"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import Field

from app.packages.attachments.api.v1.schemas.common import (
    CamelModel,
    DeletedId,
    DeletedIds,
    ErrorDetail,
    PageData,
    ResponseEnvelope,
)
from app.packages.attachments.core.enums import AttachmentKind, FolderKind, StatusEnum, StorageLocation


# ---------------------------------------------------------------------------
# 分组
# ---------------------------------------------------------------------------


class FolderCreateRequest(CamelModel):
    name: str = Field(..., min_length=1, max_length=100, description="分组名称，同级唯一")
    parent_id: Optional[int] = Field(default=None, ge=0, description="父分组 ID，0 或空表示根")
    kind: Optional[FolderKind] = None
    status: Optional[StatusEnum] = None
    sort_order: Optional[int] = Field(default=None, description="排序值，越小越靠前")
    remark: Optional[str] = Field(default=None, max_length=255)


class FolderUpdateRequest(CamelModel):
    """更新分组，仅提交的字段会被修改。"""

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    parent_id: Optional[int] = Field(default=None, ge=0)
    kind: Optional[FolderKind] = None
    status: Optional[StatusEnum] = None
    sort_order: Optional[int] = None
    remark: Optional[str] = Field(default=None, max_length=255)


class FolderItem(CamelModel):
    id: int
    name: str
    parent_id: Optional[int] = None
    kind: str
    status: str
    sort_order: int
    remark: Optional[str] = None
    creator_id: Optional[int] = None
    updater_id: Optional[int] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class FolderTreeNode(FolderItem):
    children: List["FolderTreeNode"] = Field(default_factory=list)


FolderTreeNode.model_rebuild()

FolderPageResponse = ResponseEnvelope[PageData[FolderItem]]
FolderTreeResponse = ResponseEnvelope[List[FolderTreeNode]]
FolderMutationResponse = ResponseEnvelope[FolderItem]
FolderDeletionResponse = ResponseEnvelope[DeletedId]


# ---------------------------------------------------------------------------
# 素材
# ---------------------------------------------------------------------------


class AttachmentItem(CamelModel):
    id: int
    folder_id: Optional[int] = None
    folder_name: Optional[str] = None
    kind: str
    name: str
    original_name: str
    filename: str
    ext: Optional[str] = None
    mime_type: Optional[str] = None
    size: int
    storage: str
    path: Optional[str] = None
    url: Optional[str] = None
    object_key: Optional[str] = None
    hash: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    duration: Optional[int] = None
    extra: Optional[Dict[str, Any]] = None
    status: str
    creator_id: Optional[int] = None
    updater_id: Optional[int] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class AttachmentUpdateRequest(CamelModel):
    """更新素材元数据；``folderId`` 为 0 表示移出分组。"""

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    folder_id: Optional[int] = Field(default=None, ge=0)
    kind: Optional[AttachmentKind] = None
    status: Optional[StatusEnum] = None
    width: Optional[int] = Field(default=None, ge=0)
    height: Optional[int] = Field(default=None, ge=0)
    duration: Optional[int] = Field(default=None, ge=0)
    extra: Optional[Dict[str, Any]] = None


class AttachmentBatchDeleteRequest(CamelModel):
    ids: List[int] = Field(default_factory=list)


class CloudAttachmentRequest(CamelModel):
    """浏览器直传云存储后的登记请求。"""

    object_key: str = Field(..., min_length=1, max_length=1024)
    original_name: str = Field(..., min_length=1, max_length=255)
    storage: StorageLocation = StorageLocation.QINIU
    mime_type: Optional[str] = Field(default=None, max_length=255)
    size: int = Field(default=0, ge=0)
    url: Optional[str] = Field(default=None, max_length=1024)
    hash: Optional[str] = Field(default=None, max_length=128)
    folder_id: Optional[int] = Field(default=None, ge=0)
    kind: Optional[AttachmentKind] = None
    name: Optional[str] = Field(default=None, max_length=255)
    extra: Optional[Dict[str, Any]] = None


class UploadResultItem(CamelModel):
    index: int
    original_name: str
    status: str
    reused: bool = False
    attachment: Optional[AttachmentItem] = None
    error: Optional[ErrorDetail] = None


class CloudRegistrationPayload(CamelModel):
    reused: bool
    attachment: AttachmentItem


AttachmentPageResponse = ResponseEnvelope[PageData[AttachmentItem]]
AttachmentMutationResponse = ResponseEnvelope[AttachmentItem]
AttachmentDeletionResponse = ResponseEnvelope[DeletedId]
AttachmentBatchDeletionResponse = ResponseEnvelope[DeletedIds]
UploadResponse = ResponseEnvelope[List[UploadResultItem]]
CloudRegistrationResponse = ResponseEnvelope[CloudRegistrationPayload]
