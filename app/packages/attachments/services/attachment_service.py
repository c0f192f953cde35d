"""素材业务逻辑：分组树维护、素材检索与上传入口。"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.packages.attachments.core.config import get_settings
from app.packages.attachments.core.constants import (
    BIZ_ATTACHMENT_NOT_FOUND,
    BIZ_FOLDER_NOT_FOUND,
    FILENAME_MAX_LENGTH,
    FOLDER_NAME_MAX_LENGTH,
    HTTP_STATUS_OK,
    PAGE_SIZE_MAX,
    REMARK_MAX_LENGTH,
)
from app.packages.attachments.core.enums import AttachmentKind, ErrorKind, FolderKind, StatusEnum
from app.packages.attachments.core.exceptions import (
    BusinessError,
    folder_already_exists,
    folder_delete_forbidden,
    invalid_parameter,
)
from app.packages.attachments.core.logger import logger
from app.packages.attachments.core.responses import create_response
from app.packages.attachments.core.timezone import format_datetime
from app.packages.attachments.crud.attachment import attachment_crud
from app.packages.attachments.crud.attachment_folder import FolderNode, attachment_folder_crud
from app.packages.attachments.models.attachment import Attachment
from app.packages.attachments.models.attachment_folder import AttachmentFolder
from app.packages.attachments.services.ingestion_service import (
    IncomingFile,
    ingestion_service,
    resolve_folder_id,
)


def _folder_not_found() -> BusinessError:
    return BusinessError(ErrorKind.NOT_FOUND, "分组不存在", biz_code=BIZ_FOLDER_NOT_FOUND)


def _attachment_not_found() -> BusinessError:
    return BusinessError(ErrorKind.NOT_FOUND, "素材不存在", biz_code=BIZ_ATTACHMENT_NOT_FOUND)


def _page_window(page: int, size: int) -> tuple[int, int, int]:
    normalized_page = max(page, 1)
    normalized_size = max(min(size, PAGE_SIZE_MAX), 1)
    return normalized_page, normalized_size, (normalized_page - 1) * normalized_size


class AttachmentService:
    """封装素材分组与素材的业务规则。"""

    # ------------------------------------------------------------------
    # 分组
    # ------------------------------------------------------------------

    def list_folders(
        self,
        db: Session,
        *,
        keyword: Optional[str] = None,
        kind: Optional[str] = None,
        status: Optional[str] = None,
        parent_id: Optional[int] = None,
        page: int = 1,
        size: int = 10,
        sort_by: Optional[str] = None,
        sort_order: str = "asc",
    ) -> Dict[str, Any]:
        normalized_page, normalized_size, skip = _page_window(page, size)
        items, total = attachment_folder_crud.list_page(
            db,
            filters={"keyword": keyword, "kind": kind, "status": status, "parent_id": parent_id},
            skip=skip,
            limit=normalized_size,
            sort_by=sort_by,
            sort_order=sort_order,
        )
        payload = {
            "total": total,
            "page": normalized_page,
            "size": normalized_size,
            "list": [self._serialize_folder(item) for item in items],
        }
        return create_response("获取分组列表成功", payload, HTTP_STATUS_OK)

    def folder_tree(self, db: Session, *, root_id: Optional[int] = None) -> Dict[str, Any]:
        """返回分组树，按 `sort_order, id` 排序；指定 ``root_id`` 时从其子节点开始。"""
        if root_id and attachment_folder_crud.get(db, root_id) is None:
            raise _folder_not_found()

        def build(node: FolderNode) -> Dict[str, Any]:
            data = self._serialize_folder(node.folder)
            data["children"] = [build(child) for child in node.children]
            return data

        nodes = attachment_folder_crud.list_tree(db, root_id=root_id)
        return create_response("获取分组树成功", [build(node) for node in nodes], HTTP_STATUS_OK)

    def get_folder(self, db: Session, *, folder_id: int) -> Dict[str, Any]:
        folder = attachment_folder_crud.get(db, folder_id)
        if folder is None:
            raise _folder_not_found()
        return create_response("获取分组详情成功", self._serialize_folder(folder), HTTP_STATUS_OK)

    def create_folder(self, db: Session, payload: Dict[str, Any], actor_id: int) -> Dict[str, Any]:
        name = self._normalize_folder_name(payload.get("name"))
        parent_id = self._normalize_parent_id(db, payload.get("parent_id"))

        max_depth = get_settings().folder_max_depth
        if max_depth > 0 and attachment_folder_crud.depth_of(db, parent_id) + 1 > max_depth:
            raise invalid_parameter(f"分组层级不能超过 {max_depth} 级")

        if attachment_folder_crud.get_by_parent_and_name(db, parent_id=parent_id, name=name) is not None:
            raise folder_already_exists()

        fields = {
            "name": name,
            "parent_id": parent_id,
            "kind": self._normalize_choice(payload.get("kind"), FolderKind, FolderKind.ALL.value, "kind"),
            "status": self._normalize_choice(payload.get("status"), StatusEnum, StatusEnum.ENABLED.value, "status"),
            "sort_order": self._normalize_sort_order(payload.get("sort_order")),
            "remark": self._normalize_remark(payload.get("remark")),
            "creator_id": actor_id,
            "updater_id": actor_id,
        }
        try:
            created = attachment_folder_crud.create(db, fields)
        except IntegrityError:
            db.rollback()
            if attachment_folder_crud.get_by_parent_and_name(db, parent_id=parent_id, name=name) is not None:
                raise folder_already_exists() from None
            raise
        logger.info("Folder %s (%s) created by user %s", created.id, created.name, actor_id)
        return create_response("创建分组成功", self._serialize_folder(created), HTTP_STATUS_OK)

    def update_folder(self, db: Session, *, folder_id: int, payload: Dict[str, Any], actor_id: int) -> Dict[str, Any]:
        folder = attachment_folder_crud.get(db, folder_id)
        if folder is None:
            raise _folder_not_found()

        fields: Dict[str, Any] = {}
        target_name = folder.name
        target_parent = folder.parent_id

        if "name" in payload:
            target_name = self._normalize_folder_name(payload.get("name"))
            fields["name"] = target_name

        if "parent_id" in payload:
            raw_parent = payload.get("parent_id")
            if raw_parent is not None and raw_parent == folder_id:
                raise invalid_parameter("父分组不能是自己")
            target_parent = self._normalize_parent_id(db, raw_parent)
            if target_parent is not None and folder_id in attachment_folder_crud.ancestor_ids(db, target_parent):
                raise invalid_parameter("不能将分组移动到其子分组下")
            fields["parent_id"] = target_parent

        if target_name != folder.name or target_parent != folder.parent_id:
            clash = attachment_folder_crud.get_by_parent_and_name(
                db, parent_id=target_parent, name=target_name, exclude_id=folder_id
            )
            if clash is not None:
                raise folder_already_exists()

        if "kind" in payload:
            fields["kind"] = self._normalize_choice(payload.get("kind"), FolderKind, folder.kind, "kind")
        if "status" in payload:
            fields["status"] = self._normalize_choice(payload.get("status"), StatusEnum, folder.status, "status")
        if "sort_order" in payload:
            fields["sort_order"] = self._normalize_sort_order(payload.get("sort_order"))
        if "remark" in payload:
            fields["remark"] = self._normalize_remark(payload.get("remark"))
        fields["updater_id"] = actor_id

        try:
            saved = attachment_folder_crud.update(db, folder, fields)
        except IntegrityError:
            db.rollback()
            raise folder_already_exists() from None
        return create_response("更新分组成功", self._serialize_folder(saved), HTTP_STATUS_OK)

    def delete_folder(self, db: Session, *, folder_id: int, actor_id: int) -> Dict[str, Any]:
        """删除分组：存在未删除的子分组或素材时禁止删除，不做级联。"""
        folder = attachment_folder_crud.get(db, folder_id)
        if folder is None:
            raise _folder_not_found()
        if attachment_folder_crud.count_children(db, folder_id) > 0 or attachment_folder_crud.count_attachments(db, folder_id) > 0:
            raise folder_delete_forbidden()
        deleted = attachment_folder_crud.soft_delete_by_id(db, folder_id, actor_id=actor_id)
        logger.info("Folder %s deleted by user %s", folder_id, actor_id)
        return create_response("删除分组成功", deleted, HTTP_STATUS_OK)

    # ------------------------------------------------------------------
    # 素材
    # ------------------------------------------------------------------

    def list_attachments(
        self,
        db: Session,
        *,
        keyword: Optional[str] = None,
        kind: Optional[str] = None,
        folder_id: Optional[int] = None,
        mime_type: Optional[str] = None,
        storage: Optional[str] = None,
        status: Optional[str] = None,
        page: int = 1,
        size: int = 10,
        sort_by: Optional[str] = None,
        sort_order: str = "desc",
    ) -> Dict[str, Any]:
        normalized_page, normalized_size, skip = _page_window(page, size)
        rows, total = attachment_crud.list_page(
            db,
            filters={
                "keyword": keyword,
                "kind": kind,
                "folder_id": folder_id,
                "mime_type": mime_type,
                "storage": storage,
                "status": status,
            },
            skip=skip,
            limit=normalized_size,
            sort_by=sort_by,
            sort_order=sort_order,
        )
        payload = {
            "total": total,
            "page": normalized_page,
            "size": normalized_size,
            "list": [self._serialize_attachment(item, folder_name) for item, folder_name in rows],
        }
        return create_response("获取素材列表成功", payload, HTTP_STATUS_OK)

    def get_attachment(self, db: Session, *, attachment_id: int) -> Dict[str, Any]:
        attachment = attachment_crud.get(db, attachment_id)
        if attachment is None:
            raise _attachment_not_found()
        return create_response("获取素材详情成功", self.serialize_attachment(db, attachment), HTTP_STATUS_OK)

    def update_attachment(
        self,
        db: Session,
        *,
        attachment_id: int,
        payload: Dict[str, Any],
        actor_id: int,
    ) -> Dict[str, Any]:
        attachment = attachment_crud.get(db, attachment_id)
        if attachment is None:
            raise _attachment_not_found()

        fields: Dict[str, Any] = {}
        if "folder_id" in payload:
            fields["folder_id"] = resolve_folder_id(db, payload.get("folder_id"))
        if "name" in payload:
            name = (payload.get("name") or "").strip()
            if not name:
                raise invalid_parameter("素材名称不能为空")
            if len(name) > FILENAME_MAX_LENGTH:
                raise invalid_parameter("素材名称长度不能超过 255 个字符")
            fields["name"] = name
        if "kind" in payload:
            fields["kind"] = self._normalize_choice(payload.get("kind"), AttachmentKind, attachment.kind, "kind")
        if "status" in payload:
            fields["status"] = self._normalize_choice(payload.get("status"), StatusEnum, attachment.status, "status")
        if "extra" in payload:
            fields["extra"] = payload.get("extra")
        for key in ("width", "height", "duration"):
            if key in payload:
                fields[key] = payload.get(key)
        fields["updater_id"] = actor_id

        saved = attachment_crud.update(db, attachment, fields)
        return create_response("更新素材成功", self.serialize_attachment(db, saved), HTTP_STATUS_OK)

    def delete_attachment(self, db: Session, *, attachment_id: int, actor_id: int) -> Dict[str, Any]:
        deleted = attachment_crud.soft_delete_by_id(db, attachment_id, actor_id=actor_id)
        if deleted is None:
            raise _attachment_not_found()
        return create_response("删除素材成功", deleted, HTTP_STATUS_OK)

    def delete_attachments(self, db: Session, *, ids: List[int], actor_id: int) -> Dict[str, Any]:
        """批量软删除，仅返回确实存在并被删除的 ID。"""
        candidates = [value for value in (ids or []) if isinstance(value, int) and value > 0]
        if not candidates:
            raise invalid_parameter("素材ID列表不能为空")
        deleted = attachment_crud.soft_delete_many(db, candidates, actor_id=actor_id)
        logger.info("Batch deleted attachments %s by user %s", deleted["ids"], actor_id)
        return create_response("批量删除素材成功", deleted, HTTP_STATUS_OK)

    def upload(
        self,
        db: Session,
        *,
        files: List[IncomingFile],
        folder_id: Optional[int],
        kind: Optional[str],
        name: Optional[str],
        actor_id: int,
    ) -> Dict[str, Any]:
        """上传入口：先校验分组，再逐个入库并汇总结果。"""
        if not files:
            raise invalid_parameter("请选择要上传的文件")
        resolved_folder = resolve_folder_id(db, folder_id)
        if kind is not None:
            self._normalize_choice(kind, AttachmentKind, None, "kind")

        results = ingestion_service.ingest_batch(
            db,
            files,
            folder_id=resolved_folder,
            kind=kind,
            name=name,
            actor_id=actor_id,
            serializer=self.serialize_attachment,
        )
        succeeded = sum(1 for item in results if item["status"] == "success")
        return create_response(f"上传完成：成功 {succeeded} 个，失败 {len(results) - succeeded} 个", results, HTTP_STATUS_OK)

    def register_cloud(self, db: Session, payload: Dict[str, Any], actor_id: int) -> Dict[str, Any]:
        result = ingestion_service.register_cloud_attachment(db, payload, actor_id)
        data = {"reused": result.reused, "attachment": self.serialize_attachment(db, result.attachment)}
        return create_response("登记云端素材成功", data, HTTP_STATUS_OK)

    # ------------------------------------------------------------------
    # 工具方法
    # ------------------------------------------------------------------

    def _normalize_folder_name(self, value: Optional[str]) -> str:
        trimmed = (value or "").strip()
        if not trimmed:
            raise invalid_parameter("分组名称不能为空")
        if len(trimmed) > FOLDER_NAME_MAX_LENGTH:
            raise invalid_parameter("分组名称长度不能超过 100 个字符")
        return trimmed

    def _normalize_parent_id(self, db: Session, value: Optional[int]) -> Optional[int]:
        if value is None or value == 0:
            return None
        if value < 0:
            raise invalid_parameter("父分组 ID 不合法")
        if attachment_folder_crud.get(db, value) is None:
            raise _folder_not_found()
        return value

    def _normalize_remark(self, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        trimmed = value.strip()
        if len(trimmed) > REMARK_MAX_LENGTH:
            raise invalid_parameter("备注长度不能超过 255 个字符")
        return trimmed or None

    def _normalize_sort_order(self, value: Optional[int]) -> int:
        if value is None:
            return 0
        try:
            return int(value)
        except (TypeError, ValueError) as exc:
            raise invalid_parameter("排序值必须为整数") from exc

    def _normalize_choice(self, value: Any, enum_cls, default: Optional[str], field_name: str) -> Optional[str]:
        if value is None or value == "":
            return default
        try:
            return enum_cls(value).value
        except ValueError:
            raise invalid_parameter(f"{field_name} 参数不合法") from None

    def _serialize_folder(self, folder: AttachmentFolder) -> Dict[str, Any]:
        return {
            "id": folder.id,
            "name": folder.name,
            "parentId": folder.parent_id,
            "kind": folder.kind,
            "status": folder.status,
            "sortOrder": folder.sort_order,
            "remark": folder.remark,
            "creatorId": folder.creator_id,
            "updaterId": folder.updater_id,
            "createdAt": format_datetime(folder.create_time),
            "updatedAt": format_datetime(folder.update_time),
        }

    def serialize_attachment(self, db: Session, attachment: Attachment) -> Dict[str, Any]:
        return self._serialize_attachment(attachment, attachment_crud.get_folder_name(db, attachment.folder_id))

    def _serialize_attachment(self, attachment: Attachment, folder_name: Optional[str]) -> Dict[str, Any]:
        return {
            "id": attachment.id,
            "folderId": attachment.folder_id,
            "folderName": folder_name,
            "kind": attachment.kind,
            "name": attachment.name,
            "originalName": attachment.original_name,
            "filename": attachment.filename,
            "ext": attachment.ext,
            "mimeType": attachment.mime_type,
            "size": attachment.size,
            "storage": attachment.storage,
            "path": attachment.path,
            "url": attachment.url,
            "objectKey": attachment.object_key,
            "hash": attachment.hash,
            "width": attachment.width,
            "height": attachment.height,
            "duration": attachment.duration,
            "extra": attachment.extra,
            "status": attachment.status,
            "creatorId": attachment.creator_id,
            "updaterId": attachment.updater_id,
            "createdAt": format_datetime(attachment.create_time),
            "updatedAt": format_datetime(attachment.update_time),
        }


attachment_service = AttachmentService()
