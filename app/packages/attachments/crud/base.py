"""CRUD 基类：为模型提供通用的增删改查能力，统一处理软删除过滤。"""

from typing import Any, Dict, Generic, Optional, Type, TypeVar

from sqlalchemy.orm import Query, Session

from app.packages.attachments.core.enums import StatusEnum
from app.packages.attachments.core.timezone import now
from app.packages.attachments.models.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class CRUDBase(Generic[ModelType]):
    """通用 CRUD 操作基类，封装常见的数据库交互代码。"""

    def __init__(self, model: Type[ModelType]):
        self.model = model

    def get(self, db: Session, id: Any, *, include_deleted: bool = False) -> Optional[ModelType]:
        return self.query(db, include_deleted=include_deleted).filter(self.model.id == id).first()

    def create(self, db: Session, obj_in: Dict[str, Any], *, auto_commit: bool = True) -> ModelType:
        db_obj = self.model(**obj_in)
        db.add(db_obj)
        if auto_commit:
            db.commit()
            db.refresh(db_obj)
        else:
            db.flush()
        return db_obj

    def save(self, db: Session, db_obj: ModelType, *, auto_commit: bool = True) -> ModelType:
        db.add(db_obj)
        if auto_commit:
            db.commit()
            db.refresh(db_obj)
        else:
            db.flush()
        return db_obj

    def update(
        self,
        db: Session,
        db_obj: ModelType,
        fields: Dict[str, Any],
        *,
        auto_commit: bool = True,
    ) -> ModelType:
        """按字段字典局部更新，未出现的字段保持原值。"""
        for key, value in fields.items():
            setattr(db_obj, key, value)
        return self.save(db, db_obj, auto_commit=auto_commit)

    def soft_delete(
        self,
        db: Session,
        db_obj: ModelType,
        *,
        actor_id: Optional[int] = None,
        auto_commit: bool = True,
    ) -> ModelType:
        """标记删除时间并禁用记录；不会物理删除行。"""
        db_obj.deleted_at = now()
        if hasattr(db_obj, "status"):
            db_obj.status = StatusEnum.DISABLED.value
        if actor_id is not None and hasattr(db_obj, "updater_id"):
            db_obj.updater_id = actor_id
        return self.save(db, db_obj, auto_commit=auto_commit)

    # 统一构造带软删除过滤的查询
    def query(self, db: Session, *, include_deleted: bool = False) -> Query:
        query = db.query(self.model)
        if hasattr(self.model, "deleted_at") and not include_deleted:
            query = query.filter(self.model.deleted_at.is_(None))
        return query
