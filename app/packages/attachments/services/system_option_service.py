"""系统配置项服务：提供通用键值读写，公开读取路径会剔除敏感字段。"""

from __future__ import annotations

import json
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.packages.attachments.core.constants import (
    BIZ_OPTION_NOT_FOUND,
    HTTP_STATUS_OK,
    SECRET_FIELDS,
    STORAGE_OPTION_KEYS,
)
from app.packages.attachments.core.enums import ErrorKind
from app.packages.attachments.core.exceptions import BusinessError, invalid_parameter
from app.packages.attachments.core.logger import logger
from app.packages.attachments.core.responses import create_response
from app.packages.attachments.crud.system_option import system_option_crud

OPTION_KEY_MAX_LENGTH = 100


def parse_json_object(text: Optional[str]) -> Optional[Dict[str, Any]]:
    """把配置值解析为 JSON 对象，空值或非法 JSON 返回 ``None``。"""
    if not isinstance(text, str) or not text.strip():
        return None
    try:
        parsed = json.loads(text)
    except ValueError:
        return None
    return parsed if isinstance(parsed, dict) else None


def redact_value(key: str, value: Optional[str]) -> Optional[str]:
    """剔除敏感配置中的密钥字段，返回重新序列化后的文本。"""
    fields = SECRET_FIELDS.get(key)
    if not fields or value is None:
        return value
    parsed = parse_json_object(value)
    if parsed is None:
        # 无法解析的敏感配置不对外暴露原文
        return "" if value.strip() else value
    for field in fields:
        parsed.pop(field, None)
    return json.dumps(parsed, ensure_ascii=False)


def preserve_secrets(key: str, incoming: str, stored: Optional[str]) -> str:
    """写入敏感配置时，缺失或为空的密钥字段沿用已保存的值；新值必须是 JSON 对象。"""
    fields = SECRET_FIELDS.get(key)
    if not fields:
        return incoming
    parsed = parse_json_object(incoming)
    if parsed is None:
        raise invalid_parameter(f"{key} 必须是 JSON 对象")
    previous = parse_json_object(stored)
    if previous is None:
        return incoming
    changed = False
    for field in fields:
        if not str(parsed.get(field) or "").strip() and previous.get(field):
            parsed[field] = previous[field]
            changed = True
    return json.dumps(parsed, ensure_ascii=False) if changed else incoming


class SystemOptionService:
    """封装系统配置项的业务逻辑。"""

    # ------------------------------------------------------------------
    # 内部读取（可能包含敏感字段）
    # ------------------------------------------------------------------

    def get_option(self, db: Session, key: str) -> Optional[str]:
        option = system_option_crud.get_by_key(db, key)
        return option.value if option else None

    def get_options(self, db: Session, keys: Iterable[str]) -> Dict[str, Optional[str]]:
        key_list = [key for key in keys if key]
        found = {item.key: item.value for item in system_option_crud.list_by_keys(db, key_list)}
        return {key: found.get(key) for key in key_list}

    # ------------------------------------------------------------------
    # 公开读取
    # ------------------------------------------------------------------

    def get_public_option(self, db: Session, key: str) -> Dict[str, Any]:
        normalized = self._normalize_key(key)
        option = system_option_crud.get_by_key(db, normalized)
        if option is None:
            raise BusinessError(ErrorKind.NOT_FOUND, "配置项不存在", biz_code=BIZ_OPTION_NOT_FOUND)
        data = {"key": normalized, "value": redact_value(normalized, option.value)}
        return create_response("获取配置成功", data, HTTP_STATUS_OK)

    def get_public_options(self, db: Session, keys: List[str]) -> Dict[str, Any]:
        normalized = []
        for key in keys:
            item = self._normalize_key(key)
            if item not in normalized:
                normalized.append(item)
        if not normalized:
            raise invalid_parameter("配置键列表不能为空")
        values = self.get_options(db, normalized)
        data = {key: redact_value(key, value) for key, value in values.items()}
        return create_response("获取配置成功", data, HTTP_STATUS_OK)

    # ------------------------------------------------------------------
    # 写入
    # ------------------------------------------------------------------

    def set_option(self, db: Session, key: str, value: Any, actor_id: Optional[int], *, auto_commit: bool = True) -> str:
        """写入单个配置项并返回最终保存的文本值。"""
        normalized = self._normalize_key(key)
        text = self._stringify(value)
        stored = self.get_option(db, normalized)
        text = preserve_secrets(normalized, text, stored)
        system_option_crud.upsert(db, key=normalized, value=text, actor_id=actor_id, auto_commit=auto_commit)
        return text

    def set_public_option(self, db: Session, key: str, value: Any, actor_id: int) -> Dict[str, Any]:
        normalized = self._writable_key(key)
        saved = self._write_with_retry(db, normalized, value, actor_id)
        logger.info("System option %s updated by user %s", normalized, actor_id)
        data = {"key": normalized, "value": redact_value(normalized, saved)}
        return create_response("更新配置成功", data, HTTP_STATUS_OK)

    def set_options(self, db: Session, items: List[Dict[str, Any]], actor_id: int) -> Dict[str, Any]:
        """批量写入：逐项提交，单项失败不影响其它项。"""
        if not items:
            raise invalid_parameter("配置项列表不能为空")

        results: List[Dict[str, Any]] = []
        updated = 0
        for item in items:
            raw_key = item.get("key")
            try:
                normalized = self._writable_key(raw_key)
                self._write_with_retry(db, normalized, item.get("value"), actor_id)
            except BusinessError as exc:
                db.rollback()
                results.append({"key": raw_key, "success": False, "error": exc.to_dict()})
                continue
            updated += 1
            results.append({"key": normalized, "success": True})

        logger.info("Batch updated %s/%s system options by user %s", updated, len(items), actor_id)
        return create_response("批量更新配置完成", {"updatedCount": updated, "results": results}, HTTP_STATUS_OK)

    # ------------------------------------------------------------------
    # 工具方法
    # ------------------------------------------------------------------

    def _normalize_key(self, key: Optional[str]) -> str:
        trimmed = (key or "").strip() if isinstance(key, str) else ""
        if not trimmed:
            raise invalid_parameter("配置键不能为空")
        if len(trimmed) > OPTION_KEY_MAX_LENGTH:
            raise invalid_parameter("配置键长度不能超过 100 个字符")
        return trimmed

    def _writable_key(self, key: Optional[str]) -> str:
        normalized = self._normalize_key(key)
        if normalized in STORAGE_OPTION_KEYS:
            raise invalid_parameter(f"{normalized} 请通过存储配置接口修改")
        return normalized

    def _write_with_retry(self, db: Session, key: str, value: Any, actor_id: int) -> str:
        """并发新建同名配置时唯一约束冲突，回滚后按更新重试一次。"""
        try:
            return self.set_option(db, key, value, actor_id)
        except IntegrityError:
            db.rollback()
            logger.info("System option %s was inserted concurrently, retrying as update", key)
        try:
            return self.set_option(db, key, value, actor_id)
        except IntegrityError:
            db.rollback()
            raise BusinessError(ErrorKind.ALREADY_EXISTS, f"配置项 {key} 写入冲突，请重试") from None

    def _stringify(self, value: Any) -> str:
        if value is None:
            return ""
        if isinstance(value, str):
            return value
        return json.dumps(value, ensure_ascii=False)


system_option_service = SystemOptionService()
