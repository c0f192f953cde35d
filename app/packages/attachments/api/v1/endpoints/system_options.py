"""系统配置项相关路由：公开读取会剔除敏感字段。"""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.orm import Session

from app.packages.attachments.api.v1.schemas.system_options import (
    OptionBatchItem,
    OptionBatchResponse,
    OptionMapResponse,
    OptionResponse,
    OptionValueRequest,
)
from app.packages.attachments.core.dependencies import get_current_actor_id, get_db
from app.packages.attachments.services.system_option_service import system_option_service

router = APIRouter(prefix="/system/options", tags=["system-options"])


@router.get("/query", response_model=OptionMapResponse)
def query_options(
    keys: List[str] = Query(..., alias="key", description="配置键，可重复传入"),
    db: Session = Depends(get_db),
    _: int = Depends(get_current_actor_id),
):
    return system_option_service.get_public_options(db, keys)


@router.post("/batch", response_model=OptionBatchResponse)
def batch_set_options(
    payload: List[OptionBatchItem],
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_current_actor_id),
):
    items = [item.model_dump() for item in payload]
    return system_option_service.set_options(db, items, actor_id)


@router.get("/{key}", response_model=OptionResponse)
def get_option(
    key: str = Path(..., min_length=1, max_length=100),
    db: Session = Depends(get_db),
    _: int = Depends(get_current_actor_id),
):
    return system_option_service.get_public_option(db, key)


@router.put("/{key}", response_model=OptionResponse)
def set_option(
    payload: OptionValueRequest,
    key: str = Path(..., min_length=1, max_length=100),
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_current_actor_id),
):
    return system_option_service.set_public_option(db, key, payload.value, actor_id)
