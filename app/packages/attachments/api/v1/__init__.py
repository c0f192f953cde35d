"""API v1 汇总路由：统一挂载所有版本化的子路由。"""

from fastapi import APIRouter

from app.packages.attachments.api.v1.endpoints import attachments, storage, system_options

api_router = APIRouter()
api_router.include_router(attachments.router)
api_router.include_router(storage.router)
api_router.include_router(system_options.router)
