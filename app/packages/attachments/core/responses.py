"""统一响应构造工具。"""

from typing import Any, Optional

from app.packages.attachments.core.constants import HTTP_STATUS_OK


def create_response(msg: str, data: Optional[Any] = None, code: int = HTTP_STATUS_OK) -> dict:
    """构造 ``{msg, data, code}`` 结构的响应体。"""
    return {"msg": msg, "data": data, "code": code}
