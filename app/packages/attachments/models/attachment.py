"""素材模型：记录已入库文件的元数据与存储位置。"""

from typing import Any, Optional

from sqlalchemy import JSON, BigInteger, Index, Integer, String, and_
from sqlalchemy.orm import Mapped, mapped_column

from app.packages.attachments.core.enums import AttachmentKind, StatusEnum, StorageLocation
from app.packages.attachments.models.base import AuditMixin, Base, SoftDeleteMixin, TimestampMixin


class Attachment(AuditMixin, TimestampMixin, SoftDeleteMixin, Base):
    """素材实体。

    `hash` 为内容摘要，与 `storage` 组合作为去重键；软删除不会移除字节。
    """

    __tablename__ = "attachments"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    folder_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
    kind: Mapped[str] = mapped_column(String(16), default=AttachmentKind.OTHER.value, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    original_name: Mapped[str] = mapped_column(String(255), nullable=False)
    filename: Mapped[str] = mapped_column(String(255), nullable=False)
    ext: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    mime_type: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    size: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    storage: Mapped[str] = mapped_column(String(16), default=StorageLocation.LOCAL.value, nullable=False)
    path: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    url: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    object_key: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    hash: Mapped[Optional[str]] = mapped_column(String(128), nullable=True, index=True)
    width: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    height: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    duration: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    extra: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    status: Mapped[str] = mapped_column(String(16), default=StatusEnum.ENABLED.value, nullable=False)


# 并发上传同一内容时，由唯一索引保证同一存储位置下只保留一条记录
_live_hashed = and_(Attachment.deleted_at.is_(None), Attachment.hash.isnot(None))
Index(
    "uq_attachments_hash_storage_live",
    Attachment.hash,
    Attachment.storage,
    unique=True,
    sqlite_where=_live_hashed,
    postgresql_where=_live_hashed,
)
