"""系统配置项的数据库访问方法。"""

from __future__ import annotations

from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from app.packages.attachments.crud.base import CRUDBase
from app.packages.attachments.models.system_option import SystemOption


class CRUDSystemOption(CRUDBase[SystemOption]):
    def get_by_key(self, db: Session, key: str) -> Optional[SystemOption]:
        return self.query(db).filter(self.model.key == key).first()

    def list_by_keys(self, db: Session, keys: Iterable[str]) -> List[SystemOption]:
        key_list = list(keys)
        if not key_list:
            return []
        return self.query(db).filter(self.model.key.in_(key_list)).all()

    def upsert(
        self,
        db: Session,
        *,
        key: str,
        value: str,
        actor_id: Optional[int],
        auto_commit: bool = True,
    ) -> SystemOption:
        """存在则更新值与修改人，否则新建，并记录创建人。"""
        option = self.get_by_key(db, key)
        if option is None:
            return self.create(
                db,
                {"key": key, "value": value, "creator_id": actor_id, "updater_id": actor_id},
                auto_commit=auto_commit,
            )
        option.value = value
        option.updater_id = actor_id
        return self.save(db, option, auto_commit=auto_commit)


system_option_crud = CRUDSystemOption(SystemOption)
