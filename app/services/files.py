# app/services/files.py
import uuid
from typing import List, Optional

from sqlalchemy import or_, select, func, type_coerce
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import FileNotFound, FileQueryError, FileRecordError
from app.core.logger import logger
from app.models.file import FileRecord
from app.schemas.file import FileQuery
from app.services.auth import UserSession
from app.services.storage import ObjectStorage

SORT_COLUMN_MAP = {
    "created_at": FileRecord.created_at,
    "filename": FileRecord.filename,
    "type": FileRecord.type,
}


# --- visibility ---

def shared_with_contains(db: Session, email: str):
    """SQL predicate: ``email`` is an element of ``files.shared_with``."""
    if db.get_bind().dialect.name == "postgresql":
        return type_coerce(FileRecord.shared_with, JSONB).contains([email])

    elements = func.json_each(FileRecord.shared_with).table_valued("value")
    return select(elements.c.value).where(elements.c.value == email).exists()


def visible_to(db: Session, session: UserSession):
    return or_(
        FileRecord.user_id == session.user_id,
        shared_with_contains(db, session.email),
    )


# --- listing ---

def list_visible_files(
    db: Session,
    session: Optional[UserSession],
    query: Optional[FileQuery] = None,
) -> Optional[List[FileRecord]]:
    """
    Files owned by or shared with ``session``'s user, filtered and sorted.

    Returns None without touching the database when the user id or email
    is missing, so an unscoped query can never run.
    """
    if session is None or not session.user_id or not session.email:
        logger.debug("Skipping file listing: no resolved user id and email")
        return None

    query = query or FileQuery()

    rows = db.query(FileRecord).filter(visible_to(db, session))
    if query.type:
        rows = rows.filter(FileRecord.type == query.type)
    if query.search:
        rows = rows.filter(FileRecord.filename.icontains(query.search, autoescape=True))

    sort_column = SORT_COLUMN_MAP[query.sort]
    rows = rows.order_by(sort_column.desc(), FileRecord.id.desc())
    if query.limit:
        rows = rows.limit(query.limit)

    try:
        return rows.all()
    except SQLAlchemyError as exc:
        logger.error(f"File listing failed for user {session.user_id}: {exc}")
        raise FileQueryError(str(exc)) from exc


# --- upload ---

def split_extension(filename: str) -> str:
    """Text after the last dot, or "" when the name has none."""
    if "." not in filename:
        return ""
    return filename.rsplit(".", 1)[1]


def build_storage_key(extension: str) -> str:
    # random key; the original filename only lives in the metadata row
    key = uuid.uuid4().hex
    return f"{key}.{extension}" if extension else key


def upload_file(
    db: Session,
    storage: ObjectStorage,
    session: UserSession,
    filename: str,
    content_type: Optional[str],
    data: bytes,
) -> FileRecord:
    """
    Store ``data`` then insert its metadata row.

    The two writes are not transactional. If the insert fails the object
    stays in the bucket; its key is logged.
    """
    extension = split_extension(filename)
    key = build_storage_key(extension)
    content_type = content_type or "application/octet-stream"

    # StorageError propagates; nothing has been inserted yet
    storage.put(key, data, content_type)
    public_url = storage.get_public_url(key)

    record = FileRecord(
        filename=filename,
        public_url=public_url,
        user_id=session.user_id,
        type=content_type,
        extension=extension,
        fullname=session.display_name,
        shared_with=[],
    )
    db.add(record)
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.warning(f"Metadata insert failed, object {key} is orphaned: {exc}")
        raise FileRecordError(str(exc), title="Error uploading file") from exc

    db.refresh(record)
    logger.info(f"User {session.user_id} uploaded {filename!r} as {key}")
    return record


# --- sharing ---

def read_shared_with(db: Session, session: UserSession, file_id: str) -> List[str]:
    try:
        record = db.query(FileRecord).filter(FileRecord.id == file_id, visible_to(db, session)).first()
    except SQLAlchemyError as exc:
        raise FileRecordError(str(exc), title="Error sharing file") from exc
    if record is None:
        raise FileNotFound(f"No file with id {file_id}", title="Error sharing file")
    return list(record.shared_with or [])


def write_shared_with(db: Session, file_id: str, emails: List[str]) -> FileRecord:
    """Replace the whole recipient list of one file."""
    try:
        record = db.get(FileRecord, file_id)
        if record is None:
            raise FileNotFound(f"No file with id {file_id}", title="Error sharing file")
        record.shared_with = list(emails)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise FileRecordError(str(exc), title="Error sharing file") from exc
    db.refresh(record)
    return record


def share_file(db: Session, session: UserSession, file_id: str, email: str) -> FileRecord:
    """
    Append ``email`` to a file's recipients with a read-modify-write.

    Not atomic: two concurrent shares of the same file can lose one of
    the emails (last writer wins). Duplicates are appended as-is.
    """
    email = (email or "").strip().lower()
    if not file_id or not email:
        raise ValueError("A file and a recipient email are required")

    current = read_shared_with(db, session, file_id)
    record = write_shared_with(db, file_id, current + [email])

    logger.info(f"User {session.user_id} shared file {file_id} with {email}")
    return record
