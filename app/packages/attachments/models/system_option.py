"""系统配置项模型：通用的键值存储。"""

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.packages.attachments.core.enums import StatusEnum
from app.packages.attachments.models.base import AuditMixin, Base, SoftDeleteMixin, TimestampMixin


class SystemOption(AuditMixin, TimestampMixin, SoftDeleteMixin, Base):
    """系统配置项，`value` 以文本保存（结构化配置使用 JSON 字符串）。"""

    __tablename__ = "system_options"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    key: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    value: Mapped[str] = mapped_column(Text, default="", nullable=False)
    status: Mapped[str] = mapped_column(String(16), default=StatusEnum.ENABLED.value, nullable=False)
