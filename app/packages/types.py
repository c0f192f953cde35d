"""业务包元数据定义。"""

from __future__ import annotations

from dataclasses import dataclass
from logging import Logger
from typing import Callable, Optional

from fastapi import APIRouter, FastAPI


@dataclass(frozen=True)
class AppPackage:
    """描述一个业务包暴露给主应用的接口。

    ``mount_static`` 用于挂载业务包自带的静态资源（例如本地存储的素材文件），可为空。
    """

    name: str
    description: str
    api_router: APIRouter
    get_settings: Callable[[], object]
    setup_logging: Callable[[], None]
    logger: Logger
    init_db: Callable[[], None]
    create_response: Callable[..., dict]
    http_exception_handler: Callable[..., object]
    generic_exception_handler: Callable[..., object]
    mount_static: Optional[Callable[[FastAPI], None]] = None
