"""素材库业务包：素材分组、素材入库去重与云存储配置。"""

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from app.packages.types import AppPackage

from .api.v1 import api_router
from .core.config import get_settings
from .core.exceptions import generic_exception_handler, http_exception_handler
from .core.logger import logger, setup_logging
from .core.responses import create_response
from .db.init_db import init_db


def mount_uploads(app: FastAPI) -> None:
    """以静态文件形式对外提供本地存储的素材。"""
    settings = get_settings()
    app.mount(
        settings.upload_url_prefix,
        StaticFiles(directory=str(settings.upload_directory), check_dir=False),
        name="uploads",
    )


package = AppPackage(
    name="attachments",
    description="素材分组树、按内容去重的素材入库与云存储配置",
    api_router=api_router,
    get_settings=get_settings,
    setup_logging=setup_logging,
    logger=logger,
    init_db=init_db,
    create_response=create_response,
    http_exception_handler=http_exception_handler,
    generic_exception_handler=generic_exception_handler,
    mount_static=mount_uploads,
)

__all__ = ["package", "api_router", "get_settings"]
