"""通用响应封装模型。"""

from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class CamelModel(BaseModel):
    """对外字段使用 camelCase，内部仍以 snake_case 访问。"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ResponseEnvelope(BaseModel, Generic[T]):
    """系统统一的响应外层结构。"""

    msg: str
    data: Optional[T] = None
    code: int


class PageData(BaseModel, Generic[T]):
    """分页数据结构。"""

    total: int
    page: int
    size: int
    list: List[T]


class DeletedId(BaseModel):
    id: int


class DeletedIds(BaseModel):
    ids: List[int]


class ErrorDetail(BaseModel):
    kind: str
    code: Optional[int] = None
    msg: str
