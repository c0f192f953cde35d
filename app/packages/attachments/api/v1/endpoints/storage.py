"""云存储配置相关路由。

``GET /storage/config`` 返回剔除密钥的视图；``GET /storage/export`` 导出完整配置（含密钥），用于备份与迁移。
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.packages.attachments.api.v1.schemas.storage import (
    StorageConfigPayload,
    StorageConfigResponse,
    StorageExportResponse,
    StorageImportPayload,
    StorageImportResponse,
)
from app.packages.attachments.core.dependencies import get_current_actor_id, get_db
from app.packages.attachments.services.storage_config_service import storage_config_service

router = APIRouter(prefix="/storage", tags=["storage"])


@router.get("/config", response_model=StorageConfigResponse)
def get_storage_config(db: Session = Depends(get_db), _: int = Depends(get_current_actor_id)):
    return storage_config_service.get_config(db, include_secrets=False)


@router.put("/config", response_model=StorageConfigResponse)
def upsert_storage_config(
    payload: StorageConfigPayload,
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_current_actor_id),
):
    body = payload.model_dump(by_alias=True, exclude_unset=True, exclude_none=True)
    return storage_config_service.upsert_config(db, body, actor_id)


@router.get("/export", response_model=StorageExportResponse)
def export_storage_config(db: Session = Depends(get_db), _: int = Depends(get_current_actor_id)):
    return storage_config_service.export_config(db)


@router.post("/import", response_model=StorageImportResponse)
def import_storage_config(
    payload: StorageImportPayload,
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_current_actor_id),
):
    body = payload.model_dump(by_alias=True, exclude_unset=True, exclude_none=True)
    return storage_config_service.import_config(db, body, actor_id)
