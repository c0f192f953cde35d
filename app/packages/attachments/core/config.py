"""配置模块：加载环境文件并缓存素材服务的运行配置。

环境文件加载顺序（后者覆盖前者）：
1. 项目根目录下的 ``.env``；
2. ``ENVIRONMENT`` 对应的 ``.env.<environment>``，``DEBUG`` 开启且未指定时视为 ``development``。

设置 ``ENV_FILE`` 时只加载该文件。
"""

import hashlib
import os
from functools import lru_cache
from pathlib import Path
from typing import Iterator, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _detect_base_dir() -> Path:
    """向上查找包含 ``app`` 目录的项目根路径。"""
    here = Path(__file__).resolve()
    return next((parent for parent in here.parents if (parent / "app").is_dir()), here.parent)


BASE_DIR = _detect_base_dir()


def _as_bool(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in {"1", "true", "yes", "on"}


def _env_files() -> Iterator[tuple[Path, bool]]:
    """按加载顺序产出 ``(路径, 是否覆盖已有变量)``。"""
    explicit = os.getenv("ENV_FILE")
    if explicit:
        yield BASE_DIR / explicit, True
        return

    yield BASE_DIR / ".env", False

    environment = os.getenv("ENVIRONMENT") or ("development" if _as_bool(os.getenv("DEBUG")) else None)
    if environment:
        name = environment if environment.startswith(".env") else f".env.{environment}"
        yield BASE_DIR / name, True


def _load_environment() -> None:
    for path, override in _env_files():
        if path.exists():
            load_dotenv(path, override=override, encoding="utf-8")


_load_environment()


class Settings(BaseSettings):
    """素材服务的全部配置项，字段均可通过同名环境变量覆盖。"""

    model_config = SettingsConfigDict(extra="ignore")

    # 服务
    project_name: str = Field(default="Yishan Attachments API", alias="PROJECT_NAME")
    api_v1_str: str = Field(default="/api/v1", alias="API_V1_STR")
    debug: bool = Field(default=False, alias="DEBUG")
    app_port: int = Field(default=8000, alias="APP_PORT")
    timezone: str = Field(default="Asia/Shanghai", alias="TIMEZONE")

    # 数据库：DATABASE_URL 优先，其余字段用于拼接 PostgreSQL 连接串
    database_url: Optional[str] = Field(default=None, alias="DATABASE_URL")
    database_host: str = Field(default="localhost", alias="DATABASE_HOST")
    database_port: int = Field(default=5432, alias="DATABASE_PORT")
    database_user: str = Field(default="postgres", alias="DATABASE_USER")
    database_password: str = Field(default="postgres", alias="DATABASE_PASSWORD")
    database_name: str = Field(default="yishan", alias="DATABASE_NAME")
    database_echo: bool = Field(default=False, alias="DATABASE_ECHO")

    # 令牌由外部认证系统签发，这里只负责校验
    jwt_secret_key: str = Field(default="changeme", alias="JWT_SECRET_KEY")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(default=60, alias="ACCESS_TOKEN_EXPIRE_MINUTES")

    # 日志
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_dir: str = Field(default="log", alias="LOG_DIR")
    log_file_name: str = Field(default="app.log", alias="LOG_FILE_NAME")
    log_json: bool = Field(default=False, alias="LOG_JSON")

    # 素材上传
    upload_dir: str = Field(default="public/uploads", alias="UPLOAD_DIR")
    upload_tmp_dir: str = Field(default="public/uploads/.tmp", alias="UPLOAD_TMP_DIR")
    upload_url_prefix: str = Field(default="/uploads", alias="UPLOAD_URL_PREFIX")
    upload_chunk_size: int = Field(default=1024 * 1024, ge=1, alias="UPLOAD_CHUNK_SIZE")
    attachment_hash_algorithm: str = Field(default="sha256", alias="ATTACHMENT_HASH_ALGORITHM")
    cloud_object_prefix: str = Field(default="uploads", alias="CLOUD_OBJECT_PREFIX")
    # 仅在创建分组时校验；0 表示不限制
    folder_max_depth: int = Field(default=3, ge=0, alias="FOLDER_MAX_DEPTH")

    @field_validator("upload_url_prefix")
    @classmethod
    def _normalize_url_prefix(cls, value: str) -> str:
        return "/" + value.strip().strip("/")

    @field_validator("attachment_hash_algorithm")
    @classmethod
    def _check_hash_algorithm(cls, value: str) -> str:
        name = value.strip().lower()
        if name not in hashlib.algorithms_available:
            raise ValueError(f"unsupported hash algorithm: {value}")
        return name

    @field_validator("log_level")
    @classmethod
    def _upper_log_level(cls, value: str) -> str:
        return value.strip().upper()

    @property
    def sql_database_url(self) -> str:
        if self.database_url:
            return self.database_url
        return (
            f"postgresql+psycopg2://{self.database_user}:{self.database_password}"
            f"@{self.database_host}:{self.database_port}/{self.database_name}"
        )

    def resolve_path(self, raw: str) -> Path:
        """相对路径以项目根目录为基准。"""
        path = Path(raw)
        return path if path.is_absolute() else BASE_DIR / path

    @property
    def log_directory(self) -> Path:
        return self.resolve_path(self.log_dir)

    @property
    def log_file_path(self) -> Path:
        return self.log_directory / self.log_file_name

    @property
    def upload_directory(self) -> Path:
        """本地素材落盘目录。"""
        return self.resolve_path(self.upload_dir)

    @property
    def upload_tmp_directory(self) -> Path:
        """流式写入时的暂存目录。"""
        return self.resolve_path(self.upload_tmp_dir)

    @property
    def timezone_info(self) -> ZoneInfo:
        """配置的时区，无法解析时回退到 UTC。"""
        try:
            return ZoneInfo(self.timezone)
        except ZoneInfoNotFoundError:
            return ZoneInfo("UTC")


@lru_cache
def get_settings() -> Settings:
    return Settings()
