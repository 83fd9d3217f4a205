# app/models/file.py
import uuid
from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship

from app.models.database import Base


def _new_id() -> str:
    return str(uuid.uuid4())


class FileRecord(Base):
    __tablename__ = "files"

    id = Column(String(36), primary_key=True, default=_new_id)
    filename = Column(String, nullable=False)                 # name the user uploaded
    public_url = Column(String, nullable=False)               # resolved once at upload
    type = Column(String, nullable=False)                     # MIME type from the client
    extension = Column(String, nullable=False, default="")
    # emails, in the order they were added; duplicates are kept
    shared_with = Column(JSON().with_variant(JSONB(), "postgresql"), nullable=True, default=list)
    fullname = Column(String, nullable=False, default="Unknown")
    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    # Many files → one owner (User)
    owner = relationship("User", back_populates="files")
