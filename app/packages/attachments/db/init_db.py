"""Database bootstrapping utilities."""

from __future__ import annotations

import json
import logging

from sqlalchemy.orm import Session

from app.packages.attachments.core.constants import (
    DEFAULT_ALIYUN_OSS_CONFIG,
    DEFAULT_QINIU_CONFIG,
    OPTION_ALIYUN_OSS_CONFIG,
    OPTION_QINIU_CONFIG,
    OPTION_SYSTEM_STORAGE,
)
from app.packages.attachments.core.enums import StorageProvider
from app.packages.attachments.crud.system_option import system_option_crud
from app.packages.attachments.db import session as db_session
from app.packages.attachments.models import Attachment, AttachmentFolder, SystemOption  # noqa: F401 - register tables
from app.packages.attachments.models.base import Base

logger = logging.getLogger(__name__)

SYSTEM_ACTOR_ID = 1


def init_db() -> None:
    """Create all database tables if they do not exist and seed the storage options."""
    Base.metadata.create_all(bind=db_session.engine)

    session = db_session.SessionLocal()
    try:
        _seed_storage_options(session)
        session.commit()
    except Exception:  # pragma: no cover - initialization failures should surface
        session.rollback()
        logger.exception("Failed to seed default data during database initialization")
        raise
    finally:
        session.close()


def _seed_storage_options(db: Session) -> None:
    """Insert the three storage keys with defaults when they are missing. Existing values are left untouched."""
    defaults = {
        OPTION_SYSTEM_STORAGE: StorageProvider.DISABLED.selector,
        OPTION_QINIU_CONFIG: json.dumps(DEFAULT_QINIU_CONFIG, ensure_ascii=False),
        OPTION_ALIYUN_OSS_CONFIG: json.dumps(DEFAULT_ALIYUN_OSS_CONFIG, ensure_ascii=False),
    }
    for key, value in defaults.items():
        if system_option_crud.get_by_key(db, key) is not None:
            continue
        system_option_crud.create(
            db,
            {"key": key, "value": value, "creator_id": SYSTEM_ACTOR_ID, "updater_id": SYSTEM_ACTOR_ID},
            auto_commit=False,
        )
        logger.info("Seeded system option %s", key)
