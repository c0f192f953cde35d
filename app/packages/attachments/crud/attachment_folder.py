"""素材分组的数据库访问方法。"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from app.packages.attachments.crud.base import CRUDBase
from app.packages.attachments.models.attachment import Attachment
from app.packages.attachments.models.attachment_folder import AttachmentFolder

_SORT_COLUMNS = {
    "sort_order": AttachmentFolder.sort_order,
    "sortOrder": AttachmentFolder.sort_order,
    "create_time": AttachmentFolder.create_time,
    "createdAt": AttachmentFolder.create_time,
    "update_time": AttachmentFolder.update_time,
    "updatedAt": AttachmentFolder.update_time,
}


@dataclass
class FolderNode:
    folder: AttachmentFolder
    children: List["FolderNode"] = field(default_factory=list)


class CRUDAttachmentFolder(CRUDBase[AttachmentFolder]):
    """提供分组树的查询与维护能力。"""

    def get_by_parent_and_name(
        self,
        db: Session,
        *,
        parent_id: Optional[int],
        name: str,
        exclude_id: Optional[int] = None,
    ) -> Optional[AttachmentFolder]:
        """在同一父节点下按名称查找未删除分组；``parent_id`` 为空或 0 表示根。"""
        query = self.query(db).filter(self.model.name == name)
        if parent_id:
            query = query.filter(self.model.parent_id == parent_id)
        else:
            query = query.filter(self.model.parent_id.is_(None))
        if exclude_id is not None:
            query = query.filter(self.model.id != exclude_id)
        return query.first()

    def list_page(
        self,
        db: Session,
        *,
        filters: Dict[str, Any],
        skip: int,
        limit: int,
        sort_by: Optional[str] = None,
        sort_order: str = "asc",
    ) -> Tuple[List[AttachmentFolder], int]:
        """按过滤条件分页查询，返回 ``(items, total)``。"""
        query = self.query(db)

        keyword = (filters.get("keyword") or "").strip()
        if keyword:
            query = query.filter(self.model.name.ilike(f"%{keyword}%"))
        if filters.get("kind"):
            query = query.filter(self.model.kind == filters["kind"])
        if filters.get("status"):
            query = query.filter(self.model.status == filters["status"])
        if "parent_id" in filters and filters["parent_id"] is not None:
            parent_id = filters["parent_id"]
            if parent_id == 0:
                query = query.filter(self.model.parent_id.is_(None))
            else:
                query = query.filter(self.model.parent_id == parent_id)

        total = query.count()
        column = _SORT_COLUMNS.get(sort_by or "sort_order", self.model.sort_order)
        if sort_order == "desc":
            ordering = (column.desc(), self.model.id.desc())
        else:
            ordering = (column.asc(), self.model.id.asc())
        items = query.order_by(*ordering).offset(max(skip, 0)).limit(max(limit, 1)).all()
        return items, total

    def list_all(self, db: Session) -> List[AttachmentFolder]:
        return self.query(db).order_by(self.model.sort_order.asc(), self.model.id.asc()).all()

    def list_tree(self, db: Session, *, root_id: Optional[int] = None) -> List[FolderNode]:
        """返回以 ``root_id`` 的子节点（缺省为所有根节点）开始的嵌套树。

        父节点缺失或已删除的分组不可达，不会出现在结果中。
        """
        items = self.list_all(db)
        children_map: Dict[Optional[int], List[AttachmentFolder]] = defaultdict(list)
        for item in items:
            children_map[item.parent_id].append(item)

        def build(node: AttachmentFolder) -> FolderNode:
            return FolderNode(folder=node, children=[build(child) for child in children_map.get(node.id, [])])

        start = root_id or None
        return [build(child) for child in children_map.get(start, [])]

    def count_children(self, db: Session, id: int) -> int:
        return self.query(db).filter(self.model.parent_id == id).count()

    def count_attachments(self, db: Session, id: int) -> int:
        return (
            db.query(Attachment)
            .filter(Attachment.folder_id == id, Attachment.deleted_at.is_(None))
            .count()
        )

    def ancestor_ids(self, db: Session, id: int) -> List[int]:
        """沿父链向上收集祖先 ID（由近及远），遍历步数以分组总数为上限。"""
        rows = db.query(self.model.id, self.model.parent_id).filter(self.model.deleted_at.is_(None)).all()
        parents = {row.id: row.parent_id for row in rows}
        ancestors: List[int] = []
        current = parents.get(id)
        for _ in range(len(parents)):
            if current is None or current in ancestors:
                break
            ancestors.append(current)
            current = parents.get(current)
        return ancestors

    def depth_of(self, db: Session, id: Optional[int]) -> int:
        """返回分组所在层级，根节点为 1；``None`` 表示虚拟根，层级为 0。"""
        if not id:
            return 0
        return len(self.ancestor_ids(db, id)) + 1

    def soft_delete_by_id(self, db: Session, id: int, *, actor_id: Optional[int]) -> Optional[Dict[str, int]]:
        folder = self.get(db, id)
        if folder is None:
            return None
        self.soft_delete(db, folder, actor_id=actor_id)
        return {"id": id}


attachment_folder_crud = CRUDAttachmentFolder(AttachmentFolder)
