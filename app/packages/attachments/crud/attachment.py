"""素材记录的数据库访问方法。"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.packages.attachments.core.enums import StatusEnum, StorageLocation
from app.packages.attachments.core.timezone import now
from app.packages.attachments.crud.base import CRUDBase
from app.packages.attachments.models.attachment import Attachment
from app.packages.attachments.models.attachment_folder import AttachmentFolder

_SORT_COLUMNS = {
    "create_time": Attachment.create_time,
    "createdAt": Attachment.create_time,
    "size": Attachment.size,
    "update_time": Attachment.update_time,
    "updatedAt": Attachment.update_time,
}


class CRUDAttachment(CRUDBase[Attachment]):
    """提供素材的分页检索、按摘要查重与批量软删除。"""

    def get_by_hash(self, db: Session, hash: str, storage: Optional[str] = None) -> Optional[Attachment]:
        """按内容摘要在指定存储位置（缺省为本地）查找未删除素材。"""
        location = storage or StorageLocation.LOCAL.value
        return (
            self.query(db)
            .filter(self.model.hash == hash, self.model.storage == location)
            .order_by(self.model.id.asc())
            .first()
        )

    def list_page(
        self,
        db: Session,
        *,
        filters: Dict[str, Any],
        skip: int,
        limit: int,
        sort_by: Optional[str] = None,
        sort_order: str = "desc",
    ) -> Tuple[List[Tuple[Attachment, Optional[str]]], int]:
        """分页查询素材，返回 ``([(attachment, folder_name)], total)``。

        ``folder_name`` 仅在所属分组未删除时有值。
        """
        query = db.query(Attachment, AttachmentFolder.name).outerjoin(
            AttachmentFolder,
            (AttachmentFolder.id == Attachment.folder_id) & AttachmentFolder.deleted_at.is_(None),
        )
        query = query.filter(Attachment.deleted_at.is_(None))

        keyword = (filters.get("keyword") or "").strip()
        if keyword:
            pattern = f"%{keyword}%"
            query = query.filter(or_(Attachment.name.ilike(pattern), Attachment.original_name.ilike(pattern)))
        if filters.get("kind"):
            query = query.filter(Attachment.kind == filters["kind"])
        if filters.get("folder_id") is not None:
            folder_id = filters["folder_id"]
            if folder_id == 0:
                query = query.filter(Attachment.folder_id.is_(None))
            else:
                query = query.filter(Attachment.folder_id == folder_id)
        mime_type = (filters.get("mime_type") or "").strip()
        if mime_type:
            query = query.filter(Attachment.mime_type.ilike(f"%{mime_type}%"))
        if filters.get("storage"):
            query = query.filter(Attachment.storage == filters["storage"])
        if filters.get("status"):
            query = query.filter(Attachment.status == filters["status"])

        total = query.count()
        column = _SORT_COLUMNS.get(sort_by or "create_time", Attachment.create_time)
        if sort_order == "asc":
            ordering = (column.asc(), Attachment.id.asc())
        else:
            ordering = (column.desc(), Attachment.id.desc())
        rows = query.order_by(*ordering).offset(max(skip, 0)).limit(max(limit, 1)).all()
        return [(row[0], row[1]) for row in rows], total

    def get_folder_name(self, db: Session, folder_id: Optional[int]) -> Optional[str]:
        if not folder_id:
            return None
        row = (
            db.query(AttachmentFolder.name)
            .filter(AttachmentFolder.id == folder_id, AttachmentFolder.deleted_at.is_(None))
            .first()
        )
        return row[0] if row else None

    def soft_delete_by_id(self, db: Session, id: int, *, actor_id: Optional[int]) -> Optional[Dict[str, int]]:
        attachment = self.get(db, id)
        if attachment is None:
            return None
        self.soft_delete(db, attachment, actor_id=actor_id)
        return {"id": id}

    def soft_delete_many(self, db: Session, ids: Iterable[int], *, actor_id: Optional[int]) -> Dict[str, List[int]]:
        """批量软删除：去重并忽略非正数 ID，仅返回本次确实存在的 ID。"""
        unique_ids: List[int] = []
        for raw in ids:
            value = int(raw)
            if value > 0 and value not in unique_ids:
                unique_ids.append(value)
        if not unique_ids:
            return {"ids": []}

        items = self.query(db).filter(self.model.id.in_(unique_ids)).all()
        deleted_at = now()
        for item in items:
            item.deleted_at = deleted_at
            item.status = StatusEnum.DISABLED.value
            item.updater_id = actor_id
            db.add(item)
        db.commit()
        existing = {item.id for item in items}
        return {"ids": [value for value in unique_ids if value in existing]}


attachment_crud = CRUDAttachment(Attachment)
