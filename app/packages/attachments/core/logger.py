"""日志配置模块：统一素材服务的日志格式、请求 ID 注入与文件轮转。"""

import json
import logging
import logging.config
import sys
from contextvars import ContextVar
from datetime import datetime
from typing import Any, Dict, Optional

from .config import get_settings

_LINE_FORMAT = "%(asctime)s - %(name)s - [%(request_id)s] %(levelname)s - %(message)s"
_FORMATTER_PATH = "app.packages.attachments.core.logger"

# 受统一配置管理的日志器；SQL 日志仅在 DATABASE_ECHO 开启时输出 INFO
_MANAGED_LOGGERS = ("app", "uvicorn", "uvicorn.error", "uvicorn.access")

_request_id_ctx: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


class _TZFormatter(logging.Formatter):
    """按配置时区渲染时间戳；未指定 ``datefmt`` 时输出带毫秒的 ISO-8601。"""

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:  # noqa: D401
        stamp = datetime.fromtimestamp(record.created, get_settings().timezone_info)
        if datefmt:
            return stamp.strftime(datefmt)
        return stamp.isoformat(sep=" ", timespec="milliseconds")


class ColorFormatter(_TZFormatter):
    """控制台彩色输出，仅在终端环境下启用。"""

    RESET = "\033[0m"
    COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[41m",
    }

    def __init__(self, fmt: str, datefmt: Optional[str] = None, use_colors: Optional[bool] = None) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self.use_colors = sys.stderr.isatty() if use_colors is None else use_colors

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        color = self.COLORS.get(record.levelno) if self.use_colors else None
        return f"{color}{message}{self.RESET}" if color else message


class JsonFormatter(_TZFormatter):
    """单行 JSON 日志，便于采集系统按字段检索。"""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "request_id": getattr(record, "request_id", None),
            "msg": record.getMessage(),
            "location": f"{record.module}:{record.lineno}",
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


class RequestIdFilter(logging.Filter):
    """把当前请求的 ``X-Request-ID`` 写入每条日志记录。"""

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: D401
        record.request_id = _request_id_ctx.get() or "-"
        return True


def _formatters() -> Dict[str, Dict[str, Any]]:
    return {
        "console": {"()": f"{_FORMATTER_PATH}.ColorFormatter", "fmt": _LINE_FORMAT},
        "plain": {"()": f"{_FORMATTER_PATH}._TZFormatter", "fmt": _LINE_FORMAT},
        "json": {"()": f"{_FORMATTER_PATH}.JsonFormatter"},
    }


def _handlers(settings) -> Dict[str, Dict[str, Any]]:
    return {
        "console": {
            "level": settings.log_level,
            "class": "logging.StreamHandler",
            "formatter": "json" if settings.log_json else "console",
            "filters": ["request_id"],
        },
        "file": {
            "level": settings.log_level,
            "class": "logging.handlers.TimedRotatingFileHandler",
            "formatter": "json" if settings.log_json else "plain",
            "filename": str(settings.log_file_path),
            "when": "midnight",
            "backupCount": 14,
            "encoding": "utf-8",
            "delay": True,
            "filters": ["request_id"],
        },
    }


def setup_logging() -> None:
    """初始化日志：控制台 + 按天轮转的文件，所有记录携带请求 ID。"""
    settings = get_settings()
    settings.log_directory.mkdir(parents=True, exist_ok=True)

    handler_names = ["console", "file"]
    loggers = {
        name: {"handlers": handler_names, "level": settings.log_level, "propagate": False}
        for name in _MANAGED_LOGGERS
    }
    loggers["sqlalchemy.engine"] = {
        "handlers": handler_names,
        "level": "INFO" if settings.database_echo else "WARNING",
        "propagate": False,
    }

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": _formatters(),
            "filters": {"request_id": {"()": f"{_FORMATTER_PATH}.RequestIdFilter"}},
            "handlers": _handlers(settings),
            "loggers": loggers,
            "root": {"handlers": handler_names, "level": settings.log_level},
        }
    )


logger = logging.getLogger("app")


def set_request_id(request_id: Optional[str]) -> None:
    _request_id_ctx.set(request_id)
