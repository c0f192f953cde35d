"""系统配置项相关的请求与响应模型。"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from app.packages.attachments.api.v1.schemas.common import CamelModel, ErrorDetail, ResponseEnvelope


class OptionValueRequest(BaseModel):
    value: Any = None


class OptionBatchItem(BaseModel):
    key: str = Field(..., max_length=100)
    value: Any = None


class OptionItem(BaseModel):
    key: str
    value: Optional[str] = None


class OptionBatchResultItem(BaseModel):
    key: Optional[str] = None
    success: bool
    error: Optional[ErrorDetail] = None


class OptionBatchResult(CamelModel):
    updated_count: int
    results: List[OptionBatchResultItem]


OptionResponse = ResponseEnvelope[OptionItem]
OptionMapResponse = ResponseEnvelope[Dict[str, Optional[str]]]
OptionBatchResponse = ResponseEnvelope[OptionBatchResult]
