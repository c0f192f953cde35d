"""素材分组模型：以邻接表形式组织的分组树。"""

from typing import Optional

from sqlalchemy import Index, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from app.packages.attachments.core.enums import FolderKind, StatusEnum
from app.packages.attachments.models.base import AuditMixin, Base, SoftDeleteMixin, TimestampMixin


class AttachmentFolder(AuditMixin, TimestampMixin, SoftDeleteMixin, Base):
    """素材分组，通过 `parent_id` 形成树。

    - 根节点的 `parent_id` 为 NULL；
    - 同一父节点下未删除分组的名称唯一（区分大小写）；
    - `sort_order` 用于同级展示顺序，相同时按 id 排序。
    """

    __tablename__ = "attachment_folders"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    # 业务层负责父节点校验，软删除下不使用外键级联
    parent_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
    kind: Mapped[str] = mapped_column(String(16), default=FolderKind.ALL.value, nullable=False)
    status: Mapped[str] = mapped_column(String(16), default=StatusEnum.ENABLED.value, nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    remark: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)


# 存储层兜底：并发创建同名分组时由唯一索引拒绝后写入者
Index(
    "uq_attachment_folders_parent_name_live",
    func.coalesce(AttachmentFolder.parent_id, 0),
    AttachmentFolder.name,
    unique=True,
    sqlite_where=AttachmentFolder.deleted_at.is_(None),
    postgresql_where=AttachmentFolder.deleted_at.is_(None),
)
