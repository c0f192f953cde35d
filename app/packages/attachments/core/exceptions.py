"""异常处理模块：定义统一的业务异常与响应格式。"""

from typing import Any, Optional

from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse

from app.packages.attachments.core.config import get_settings
from app.packages.attachments.core.constants import (
    BIZ_FOLDER_ALREADY_EXISTS,
    BIZ_FOLDER_DELETE_FORBIDDEN,
    BIZ_INVALID_PARAMETER,
    BIZ_IO_ERROR,
    BIZ_STORAGE_UNAVAILABLE,
)
from app.packages.attachments.core.enums import ErrorKind
from app.packages.attachments.core.logger import logger


class AppException(HTTPException):
    """携带统一响应结构的业务异常，方便在全局处理中转换响应体。"""

    def __init__(self, msg: str, code: int = status.HTTP_400_BAD_REQUEST, data=None) -> None:
        super().__init__(status_code=code, detail=msg)
        self.data = data


_KIND_STATUS = {
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.ALREADY_EXISTS: status.HTTP_409_CONFLICT,
    ErrorKind.DELETE_FORBIDDEN: status.HTTP_409_CONFLICT,
    ErrorKind.INVALID_PARAMETER: status.HTTP_400_BAD_REQUEST,
    ErrorKind.IO_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorKind.STORAGE_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorKind.INTERNAL_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


class BusinessError(AppException):
    """带错误分类与业务码的异常，HTTP 状态码由分类决定。"""

    def __init__(
        self,
        kind: ErrorKind,
        msg: str,
        *,
        biz_code: Optional[int] = None,
        data: Any = None,
    ) -> None:
        super().__init__(msg, code=_KIND_STATUS[kind], data=data)
        self.kind = kind
        self.biz_code = biz_code

    def to_dict(self) -> dict:
        """批量结果中单项失败时使用的精简描述。"""
        return {"kind": self.kind.value, "code": self.biz_code, "msg": self.detail}


def invalid_parameter(msg: str) -> BusinessError:
    return BusinessError(ErrorKind.INVALID_PARAMETER, msg, biz_code=BIZ_INVALID_PARAMETER)


def folder_already_exists(msg: str = "分组名称已存在") -> BusinessError:
    return BusinessError(ErrorKind.ALREADY_EXISTS, msg, biz_code=BIZ_FOLDER_ALREADY_EXISTS)


def folder_delete_forbidden(msg: str = "分组下存在子分组或素材，禁止删除") -> BusinessError:
    return BusinessError(ErrorKind.DELETE_FORBIDDEN, msg, biz_code=BIZ_FOLDER_DELETE_FORBIDDEN)


def storage_unavailable(msg: str) -> BusinessError:
    return BusinessError(ErrorKind.STORAGE_UNAVAILABLE, msg, biz_code=BIZ_STORAGE_UNAVAILABLE)


def io_error(msg: str) -> BusinessError:
    return BusinessError(ErrorKind.IO_ERROR, msg, biz_code=BIZ_IO_ERROR)


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:  # pragma: no cover - framework glue
    """将 FastAPI 的 ``HTTPException`` 转换为统一响应格式。"""
    payload = {"msg": exc.detail, "data": getattr(exc, "data", None), "code": exc.status_code}
    if isinstance(exc, BusinessError):
        payload["kind"] = exc.kind.value
        payload["bizCode"] = exc.biz_code
    return JSONResponse(status_code=exc.status_code, content=payload, headers=getattr(exc, "headers", None))


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:  # pragma: no cover - framework glue
    """兜底处理：将未捕获异常转换为标准的 500 响应结构。"""
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    payload = {
        "msg": "服务器内部错误",
        "data": None,
        "code": status.HTTP_500_INTERNAL_SERVER_ERROR,
        "kind": ErrorKind.INTERNAL_ERROR.value,
    }
    if get_settings().debug:
        payload["data"] = {"detail": str(exc)}
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=payload)
