"""素材与素材分组相关路由。"""

from __future__ import annotations

from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, File, Path, Query, UploadFile
from sqlalchemy.orm import Session

from app.packages.attachments.api.v1.schemas.attachments import (
    AttachmentBatchDeleteRequest,
    AttachmentBatchDeletionResponse,
    AttachmentDeletionResponse,
    AttachmentMutationResponse,
    AttachmentPageResponse,
    AttachmentUpdateRequest,
    CloudAttachmentRequest,
    CloudRegistrationResponse,
    FolderCreateRequest,
    FolderDeletionResponse,
    FolderMutationResponse,
    FolderPageResponse,
    FolderTreeResponse,
    FolderUpdateRequest,
    UploadResponse,
)
from app.packages.attachments.core.dependencies import get_current_actor_id, get_db
from app.packages.attachments.core.enums import AttachmentKind, FolderKind, StatusEnum, StorageLocation
from app.packages.attachments.services.attachment_service import attachment_service
from app.packages.attachments.services.ingestion_service import IncomingFile

router = APIRouter(prefix="/attachments", tags=["attachments"])

SortOrder = Literal["asc", "desc"]


# ---------------------------------------------------------------------------
# 分组（需先于 /{attachment_id} 注册）
# ---------------------------------------------------------------------------


@router.get("/folders", response_model=FolderPageResponse)
def list_folders(
    keyword: Optional[str] = Query(default=None, max_length=100),
    kind: Optional[FolderKind] = Query(default=None),
    status: Optional[StatusEnum] = Query(default=None),
    parent_id: Optional[int] = Query(default=None, alias="parentId", ge=0),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=10, alias="pageSize", ge=1, le=200),
    sort_by: Literal["sort_order", "createdAt", "updatedAt"] = Query(default="sort_order", alias="sortBy"),
    sort_order: SortOrder = Query(default="asc", alias="sortOrder"),
    db: Session = Depends(get_db),
    _: int = Depends(get_current_actor_id),
):
    return attachment_service.list_folders(
        db,
        keyword=keyword,
        kind=kind.value if kind else None,
        status=status.value if status else None,
        parent_id=parent_id,
        page=page,
        size=page_size,
        sort_by=sort_by,
        sort_order=sort_order,
    )


@router.get("/folders/tree", response_model=FolderTreeResponse)
def folder_tree(
    root_id: Optional[int] = Query(default=None, alias="rootId", ge=0),
    db: Session = Depends(get_db),
    _: int = Depends(get_current_actor_id),
):
    return attachment_service.folder_tree(db, root_id=root_id)


@router.get("/folders/{folder_id}", response_model=FolderMutationResponse)
def get_folder(
    folder_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
    _: int = Depends(get_current_actor_id),
):
    return attachment_service.get_folder(db, folder_id=folder_id)


@router.post("/folders", response_model=FolderMutationResponse)
def create_folder(
    payload: FolderCreateRequest,
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_current_actor_id),
):
    return attachment_service.create_folder(db, payload.model_dump(mode="json", exclude_unset=True), actor_id)


@router.put("/folders/{folder_id}", response_model=FolderMutationResponse)
def update_folder(
    payload: FolderUpdateRequest,
    folder_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_current_actor_id),
):
    return attachment_service.update_folder(
        db,
        folder_id=folder_id,
        payload=payload.model_dump(mode="json", exclude_unset=True),
        actor_id=actor_id,
    )


@router.delete("/folders/{folder_id}", response_model=FolderDeletionResponse)
def delete_folder(
    folder_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_current_actor_id),
):
    return attachment_service.delete_folder(db, folder_id=folder_id, actor_id=actor_id)


# ---------------------------------------------------------------------------
# 素材
# ---------------------------------------------------------------------------


@router.get("", response_model=AttachmentPageResponse)
def list_attachments(
    keyword: Optional[str] = Query(default=None, max_length=255),
    kind: Optional[AttachmentKind] = Query(default=None),
    folder_id: Optional[int] = Query(default=None, alias="folderId", ge=0),
    mime_type: Optional[str] = Query(default=None, alias="mimeType", max_length=255),
    storage: Optional[StorageLocation] = Query(default=None),
    status: Optional[StatusEnum] = Query(default=None),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=10, alias="pageSize", ge=1, le=200),
    sort_by: Literal["createdAt", "size", "updatedAt"] = Query(default="createdAt", alias="sortBy"),
    sort_order: SortOrder = Query(default="desc", alias="sortOrder"),
    db: Session = Depends(get_db),
    _: int = Depends(get_current_actor_id),
):
    return attachment_service.list_attachments(
        db,
        keyword=keyword,
        kind=kind.value if kind else None,
        folder_id=folder_id,
        mime_type=mime_type,
        storage=storage.value if storage else None,
        status=status.value if status else None,
        page=page,
        size=page_size,
        sort_by=sort_by,
        sort_order=sort_order,
    )


@router.post("", response_model=UploadResponse)
def upload_attachments(
    files: List[UploadFile] = File(..., description="待上传文件，可多选"),
    folder_id: Optional[int] = Query(default=None, alias="folderId", ge=0),
    kind: Optional[AttachmentKind] = Query(default=None),
    name: Optional[str] = Query(default=None, max_length=255, description="素材名称（批量上传时忽略）"),
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_current_actor_id),
):
    incoming = [
        IncomingFile(stream=item.file, original_name=item.filename or "file", content_type=item.content_type)
        for item in files
    ]
    return attachment_service.upload(
        db,
        files=incoming,
        folder_id=folder_id,
        kind=kind.value if kind else None,
        name=name,
        actor_id=actor_id,
    )


@router.post("/cloud", response_model=CloudRegistrationResponse)
def register_cloud_attachment(
    payload: CloudAttachmentRequest,
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_current_actor_id),
):
    return attachment_service.register_cloud(db, payload.model_dump(mode="json", exclude_unset=True), actor_id)


@router.delete("", response_model=AttachmentBatchDeletionResponse)
def delete_attachments(
    payload: AttachmentBatchDeleteRequest,
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_current_actor_id),
):
    return attachment_service.delete_attachments(db, ids=payload.ids, actor_id=actor_id)


@router.get("/{attachment_id}", response_model=AttachmentMutationResponse)
def get_attachment(
    attachment_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
    _: int = Depends(get_current_actor_id),
):
    return attachment_service.get_attachment(db, attachment_id=attachment_id)


@router.put("/{attachment_id}", response_model=AttachmentMutationResponse)
def update_attachment(
    payload: AttachmentUpdateRequest,
    attachment_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_current_actor_id),
):
    return attachment_service.update_attachment(
        db,
        attachment_id=attachment_id,
        payload=payload.model_dump(mode="json", exclude_unset=True),
        actor_id=actor_id,
    )


@router.delete("/{attachment_id}", response_model=AttachmentDeletionResponse)
def delete_attachment(
    attachment_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_current_actor_id),
):
    return attachment_service.delete_attachment(db, attachment_id=attachment_id, actor_id=actor_id)
