"""测试夹具：为 pytest 提供数据库、上传目录与客户端的共享配置。"""

import os
import shutil
import tempfile
from typing import Generator

TEST_DB_PATH = os.path.join(os.path.dirname(__file__), "test.db")
TEST_DATABASE_URL = f"sqlite:///{TEST_DB_PATH}"
_RUNTIME_DIR = tempfile.mkdtemp(prefix="attachments-tests-")

# 配置在首次导入应用前生效
os.environ["DATABASE_URL"] = TEST_DATABASE_URL
os.environ["LOG_DIR"] = os.path.join(_RUNTIME_DIR, "log")
os.environ["UPLOAD_DIR"] = os.path.join(_RUNTIME_DIR, "uploads")
os.environ["UPLOAD_TMP_DIR"] = os.path.join(_RUNTIME_DIR, "uploads", ".tmp")
os.environ["FOLDER_MAX_DEPTH"] = "3"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402

from app.main import app  # noqa: E402
from app.packages.attachments.core.config import get_settings  # noqa: E402
from app.packages.attachments.core.dependencies import get_db  # noqa: E402
from app.packages.attachments.core.security import create_access_token  # noqa: E402
from app.packages.attachments.db import session as db_session  # noqa: E402
from app.packages.attachments.db.init_db import init_db  # noqa: E402
from app.packages.attachments.models import Attachment, AttachmentFolder, SystemOption  # noqa: E402
from app.packages.attachments.models.base import Base  # noqa: E402
from app.packages.attachments.services import storage_backends  # noqa: E402

TEST_ACTOR_ID = 7


@pytest.fixture(scope="session", autouse=True)
def setup_test_database() -> Generator[None, None, None]:
    """创建隔离的 SQLite 测试数据库，并在会话结束后清理。"""
    if os.path.exists(TEST_DB_PATH):
        os.remove(TEST_DB_PATH)

    engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    db_session.engine = engine
    db_session.SessionLocal = TestingSessionLocal

    Base.metadata.create_all(bind=engine)
    init_db()
    yield

    engine.dispose()
    if os.path.exists(TEST_DB_PATH):
        os.remove(TEST_DB_PATH)
    shutil.rmtree(_RUNTIME_DIR, ignore_errors=True)


@pytest.fixture(autouse=True)
def isolated_state() -> Generator[None, None, None]:
    """每个用例从空的上传目录开始，并在结束后清空业务数据、恢复默认存储配置。"""
    settings = get_settings()
    for directory in (settings.upload_tmp_directory, settings.upload_directory):
        shutil.rmtree(directory, ignore_errors=True)
    yield

    storage_backends._client_factories.clear()
    session = db_session.SessionLocal()
    try:
        for model in (Attachment, AttachmentFolder, SystemOption):
            session.query(model).delete()
        session.commit()
    finally:
        session.close()
    init_db()


@pytest.fixture()
def db_session_fixture() -> Generator[Session, None, None]:
    """提供给测试用例使用的数据库会话。"""
    session = db_session.SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client(db_session_fixture):
    """构建 FastAPI TestClient，并注入测试专用的数据库依赖。"""
    def override_get_db() -> Generator[Session, None, None]:
        session = db_session.SessionLocal()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture()
def auth_headers() -> dict:
    """模拟外部认证系统签发的访问令牌。"""
    token = create_access_token({"user_id": TEST_ACTOR_ID})
    return {"Authorization": f"Bearer {token}"}
