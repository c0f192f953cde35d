"""媒体类型推断：依据 MIME 前缀把文件归入 image/audio/video/other，并读取图片尺寸。"""

from __future__ import annotations

import mimetypes
from pathlib import Path
from typing import Optional, Tuple

from PIL import Image, UnidentifiedImageError

from app.packages.attachments.core.enums import AttachmentKind

_PREFIX_KINDS = (
    ("image/", AttachmentKind.IMAGE),
    ("audio/", AttachmentKind.AUDIO),
    ("video/", AttachmentKind.VIDEO),
)

DEFAULT_MIME_TYPE = "application/octet-stream"


def guess_kind(mime_type: Optional[str]) -> AttachmentKind:
    """按 MIME 前缀推断素材类型，大小写不敏感，未知时返回 ``other``。"""
    normalized = (mime_type or "").strip().lower()
    for prefix, kind in _PREFIX_KINDS:
        if normalized.startswith(prefix):
            return kind
    return AttachmentKind.OTHER


def resolve_mime_type(filename: Optional[str], declared: Optional[str]) -> str:
    """优先使用客户端声明的 MIME，缺失或为通用二进制类型时按扩展名推测。"""
    declared_norm = (declared or "").strip().lower()
    if declared_norm and declared_norm != DEFAULT_MIME_TYPE:
        return declared_norm
    guessed, _ = mimetypes.guess_type(filename or "")
    return guessed or declared_norm or DEFAULT_MIME_TYPE


def resolve_kind(requested: Optional[str], mime_type: Optional[str]) -> AttachmentKind:
    """显式指定的类型优先；未指定或非法时回退到 MIME 推断。"""
    if requested:
        try:
            return AttachmentKind(requested)
        except ValueError:
            pass
    return guess_kind(mime_type)


def read_image_size(path: Path) -> Optional[Tuple[int, int]]:
    """读取图片宽高，仅解析文件头；Pillow 无法识别的内容返回 ``None``。"""
    try:
        with Image.open(path) as img:
            width, height = img.size
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError):
        return None
    return width, height
