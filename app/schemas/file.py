# app/schemas/file.py
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

SORT_COLUMNS = ("created_at", "filename", "type")
DEFAULT_SORT = "created_at"
MAX_LIMIT = 100


class FileQuery(BaseModel):
    """
    Listing parameters as they arrive from the query string.

    Bad values never raise: an unknown sort column falls back to
    ``created_at`` and an out-of-range limit means "no limit".
    """

    search: Optional[str] = None
    type: Optional[str] = None
    sort: str = DEFAULT_SORT
    limit: Optional[int] = None

    @field_validator("search", "type", mode="before")
    @classmethod
    def _blank_is_none(cls, value):
        if isinstance(value, str):
            value = value.strip()
        return value or None

    @field_validator("sort", mode="before")
    @classmethod
    def _allowed_sort(cls, value):
        return value if value in SORT_COLUMNS else DEFAULT_SORT

    @field_validator("limit", mode="before")
    @classmethod
    def _clamp_limit(cls, value):
        if value is None or value == "":
            return None
        try:
            value = int(value)
        except (TypeError, ValueError):
            return None
        return value if 1 <= value <= MAX_LIMIT else None


class FileRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    filename: str
    public_url: str
    type: str
    extension: str = ""
    shared_with: List[str] = Field(default_factory=list)
    fullname: str = "Unknown"
    created_at: Optional[datetime] = None

    @field_validator("shared_with", mode="before")
    @classmethod
    def _null_is_empty(cls, value):
        return value or []

    @property
    def shared_with_display(self) -> str:
        return ", ".join(self.shared_with) or "Not shared"


class FileListResponse(BaseModel):
    success: bool
    data: Optional[List[FileRead]] = None
    error: Optional[str] = None
