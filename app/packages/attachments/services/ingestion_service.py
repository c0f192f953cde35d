"""素材入库流水线：流式计算摘要、按内容去重、落盘并写入记录。

单个文件的处理流程：
1. 分块读取上传流，写入暂存文件的同时计算摘要与大小；
2. 解析 MIME 与素材类型；
3. 按 ``(hash, storage)`` 查重，命中则删除暂存文件并直接复用已有记录；
4. 以 ``uuid4().hex + ext`` 为文件名交给存储后端落盘；
5. 写入素材记录；若并发写入触发唯一索引冲突，则回滚、重新查询并复用胜出者，同时清理本次落盘的字节。

批量上传中每个文件独立处理，单个失败不影响其它文件。
"""

from __future__ import annotations

import hashlib
import os
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Any, BinaryIO, Dict, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.packages.attachments.core.config import get_settings
from app.packages.attachments.core.constants import (
    BIZ_FOLDER_NOT_FOUND,
    EXT_MAX_LENGTH,
    FILENAME_MAX_LENGTH,
)
from app.packages.attachments.core.enums import AttachmentKind, ErrorKind, StatusEnum, StorageLocation
from app.packages.attachments.core.exceptions import BusinessError, invalid_parameter, io_error
from app.packages.attachments.core.logger import logger
from app.packages.attachments.crud.attachment import attachment_crud
from app.packages.attachments.crud.attachment_folder import attachment_folder_crud
from app.packages.attachments.models.attachment import Attachment
from app.packages.attachments.services.media_kind import read_image_size, resolve_kind, resolve_mime_type
from app.packages.attachments.services.storage_backends import (
    StorageBackend,
    build_backend,
    build_public_url,
)
from app.packages.attachments.services.storage_config_service import storage_config_service


@dataclass
class StagedFile:
    path: Path
    size: int
    hash: str


@dataclass
class IncomingFile:
    """一次上传中的单个文件。"""

    stream: BinaryIO
    original_name: str
    content_type: Optional[str] = None


@dataclass
class IngestResult:
    attachment: Attachment
    reused: bool


def extract_ext(original_name: str) -> str:
    """取原始文件名的小写扩展名（含点号），过长时视为无扩展名。"""
    suffix = Path(original_name or "").suffix.lower()
    if len(suffix) > EXT_MAX_LENGTH or suffix == ".":
        return ""
    return suffix


def resolve_folder_id(db: Session, folder_id: Optional[int]) -> Optional[int]:
    """``None``/0 表示未分组；正数必须指向未删除的分组。"""
    if folder_id is None or folder_id == 0:
        return None
    if folder_id < 0:
        raise invalid_parameter("分组 ID 不合法")
    if attachment_folder_crud.get(db, folder_id) is None:
        raise BusinessError(ErrorKind.NOT_FOUND, "分组不存在", biz_code=BIZ_FOLDER_NOT_FOUND)
    return folder_id


def _remove_quietly(path: Path) -> None:
    try:
        if path.exists():
            os.remove(path)
    except OSError as exc:  # pragma: no cover - 清理失败仅记录
        logger.warning("Failed to remove staged file %s: %s", path, exc)


class IngestionService:
    """封装素材上传、去重与云端登记。"""

    # ------------------------------------------------------------------
    # 暂存与摘要
    # ------------------------------------------------------------------

    def stage(self, stream: BinaryIO) -> StagedFile:
        """把上传流分块写入暂存目录，同时计算摘要与字节数；失败时清理暂存文件。"""
        settings = get_settings()
        tmp_dir = settings.upload_tmp_directory
        try:
            tmp_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise io_error(f"无法创建上传暂存目录: {exc}") from exc

        try:
            digest = hashlib.new(settings.attachment_hash_algorithm)
        except ValueError as exc:
            raise io_error(f"不支持的摘要算法: {settings.attachment_hash_algorithm}") from exc

        staged_path = tmp_dir / f"{uuid.uuid4().hex}.part"
        size = 0
        chunk_size = max(settings.upload_chunk_size, 1)
        try:
            with open(staged_path, "wb") as fh:
                while True:
                    chunk = stream.read(chunk_size)
                    if not chunk:
                        break
                    digest.update(chunk)
                    fh.write(chunk)
                    size += len(chunk)
        except Exception as exc:
            # 客户端断开等读取异常同样按单文件 IO 失败处理
            _remove_quietly(staged_path)
            raise io_error(f"读取上传文件失败: {exc}") from exc
        return StagedFile(path=staged_path, size=size, hash=digest.hexdigest())

    # ------------------------------------------------------------------
    # 上传
    # ------------------------------------------------------------------

    def current_backend(self, db: Session) -> StorageBackend:
        active = storage_config_service.active_storage(db)
        settings = getattr(active, "settings", None)
        return build_backend(provider=active.provider, config=settings)

    def ingest_file(
        self,
        db: Session,
        incoming: IncomingFile,
        *,
        backend: StorageBackend,
        folder_id: Optional[int],
        kind: Optional[str],
        name: Optional[str],
        actor_id: int,
    ) -> IngestResult:
        """处理单个文件，返回素材记录与是否复用已有记录。"""
        original_name = (incoming.original_name or "file").strip()[:FILENAME_MAX_LENGTH] or "file"
        staged = self.stage(incoming.stream)
        try:
            mime_type = resolve_mime_type(original_name, incoming.content_type)
            resolved_kind = resolve_kind(kind, mime_type)

            existing = attachment_crud.get_by_hash(db, staged.hash, backend.location)
            if existing is not None:
                logger.info("Reusing attachment %s for %s (hash hit)", existing.id, original_name)
                return IngestResult(attachment=existing, reused=True)

            dimensions = read_image_size(staged.path) if resolved_kind == AttachmentKind.IMAGE else None
            ext = extract_ext(original_name)
            filename = f"{uuid.uuid4().hex}{ext}"
            stored = backend.store(staged_path=staged.path, filename=filename, mime_type=mime_type)

            fields = {
                "folder_id": folder_id,
                "kind": resolved_kind.value,
                "name": (name or "").strip()[:FILENAME_MAX_LENGTH] or original_name,
                "original_name": original_name,
                "filename": stored.filename,
                "ext": ext or None,
                "mime_type": mime_type,
                "size": staged.size,
                "storage": stored.storage,
                "path": stored.path,
                "url": stored.url,
                "object_key": stored.object_key,
                "hash": staged.hash,
                "width": dimensions[0] if dimensions else None,
                "height": dimensions[1] if dimensions else None,
                "status": StatusEnum.ENABLED.value,
                "creator_id": actor_id,
                "updater_id": actor_id,
            }
            try:
                created = attachment_crud.create(db, fields)
            except IntegrityError:
                db.rollback()
                winner = attachment_crud.get_by_hash(db, staged.hash, backend.location)
                backend.remove(stored)
                if winner is None:
                    raise
                logger.info("Reusing attachment %s for %s (concurrent upload)", winner.id, original_name)
                return IngestResult(attachment=winner, reused=True)
            except Exception:
                db.rollback()
                backend.remove(stored)
                raise

            logger.info("Stored attachment %s (%s, %s bytes) on %s", created.id, original_name, staged.size, created.storage)
            return IngestResult(attachment=created, reused=False)
        finally:
            _remove_quietly(staged.path)

    def ingest_batch(
        self,
        db: Session,
        files: List[IncomingFile],
        *,
        folder_id: Optional[int],
        kind: Optional[str],
        name: Optional[str],
        actor_id: int,
        serializer,
    ) -> List[Dict[str, Any]]:
        """逐个处理文件，返回按原顺序排列的结果列表。

        ``name`` 仅在单文件上传时生效；存储后端不可用时每个文件都记为失败。
        """
        backend: Optional[StorageBackend] = None
        backend_error: Optional[BusinessError] = None
        try:
            backend = self.current_backend(db)
        except BusinessError as exc:
            backend_error = exc

        single_name = name if len(files) == 1 else None
        results: List[Dict[str, Any]] = []
        for index, incoming in enumerate(files):
            entry: Dict[str, Any] = {"index": index, "originalName": incoming.original_name, "reused": False}
            if backend_error is not None:
                entry.update(status="failure", error=backend_error.to_dict())
                results.append(entry)
                continue
            try:
                result = self.ingest_file(
                    db,
                    incoming,
                    backend=backend,
                    folder_id=folder_id,
                    kind=kind,
                    name=single_name,
                    actor_id=actor_id,
                )
            except BusinessError as exc:
                logger.warning("Failed to ingest %s: %s", incoming.original_name, exc.detail)
                entry.update(status="failure", error=exc.to_dict())
            except Exception:
                db.rollback()
                logger.exception("Unexpected error while ingesting %s", incoming.original_name)
                entry.update(
                    status="failure",
                    error={"kind": ErrorKind.INTERNAL_ERROR.value, "code": None, "msg": "服务器内部错误"},
                )
            else:
                entry.update(status="success", reused=result.reused, attachment=serializer(db, result.attachment))
            results.append(entry)
        return results

    # ------------------------------------------------------------------
    # 云端直传登记
    # ------------------------------------------------------------------

    def register_cloud_attachment(self, db: Session, payload: Dict[str, Any], actor_id: int) -> IngestResult:
        """登记已由浏览器直传至七牛云/阿里云 OSS 的对象。"""
        object_key = str(payload.get("object_key") or "").strip()
        original_name = str(payload.get("original_name") or "").strip()
        if not object_key:
            raise invalid_parameter("objectKey 不能为空")
        if not original_name:
            raise invalid_parameter("originalName 不能为空")

        storage = payload.get("storage") or StorageLocation.QINIU.value
        try:
            location = StorageLocation(storage)
        except ValueError:
            raise invalid_parameter("storage 参数不合法") from None
        if location == StorageLocation.LOCAL:
            raise invalid_parameter("云端登记不支持本地存储")

        folder_id = resolve_folder_id(db, payload.get("folder_id"))
        mime_type = resolve_mime_type(original_name, payload.get("mime_type"))
        resolved_kind = resolve_kind(payload.get("kind"), mime_type)

        hash_value = (payload.get("hash") or "").strip() or None
        if hash_value:
            existing = attachment_crud.get_by_hash(db, hash_value, location.value)
            if existing is not None:
                return IngestResult(attachment=existing, reused=True)

        url = (payload.get("url") or "").strip() or None
        if url is None:
            url = build_public_url(storage_config_service.load(db)[location.value], object_key)

        size = payload.get("size") or 0
        if size < 0:
            raise invalid_parameter("size 不能为负数")

        fields = {
            "folder_id": folder_id,
            "kind": resolved_kind.value,
            "name": (payload.get("name") or "").strip()[:FILENAME_MAX_LENGTH] or original_name[:FILENAME_MAX_LENGTH],
            "original_name": original_name[:FILENAME_MAX_LENGTH],
            "filename": os.path.basename(object_key)[:FILENAME_MAX_LENGTH] or object_key[:FILENAME_MAX_LENGTH],
            "ext": extract_ext(original_name) or None,
            "mime_type": mime_type,
            "size": size,
            "storage": location.value,
            "path": object_key,
            "url": url,
            "object_key": object_key,
            "hash": hash_value,
            "extra": payload.get("extra"),
            "status": StatusEnum.ENABLED.value,
            "creator_id": actor_id,
            "updater_id": actor_id,
        }
        try:
            created = attachment_crud.create(db, fields)
        except IntegrityError:
            db.rollback()
            winner = attachment_crud.get_by_hash(db, hash_value, location.value) if hash_value else None
            if winner is None:
                raise
            return IngestResult(attachment=winner, reused=True)
        logger.info("Registered cloud attachment %s (%s) on %s", created.id, object_key, location.value)
        return IngestResult(attachment=created, reused=False)


ingestion_service = IngestionService()
