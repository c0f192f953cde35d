"""模型包初始化，便于统一导入 ORM 实体并触发模型注册。"""

from app.packages.attachments.models.attachment import Attachment
from app.packages.attachments.models.attachment_folder import AttachmentFolder
from app.packages.attachments.models.system_option import SystemOption

__all__ = [
    "Attachment",
    "AttachmentFolder",
    "SystemOption",
]
