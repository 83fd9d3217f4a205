# app/core/exceptions.py
from typing import Optional


class FileShareError(Exception):
    """Base error: carries a notification title plus the raw underlying message."""

    title = "Something went wrong"

    def __init__(self, message: str, title: Optional[str] = None):
        self.message = message
        if title is not None:
            self.title = title
        super().__init__(message)


class AuthError(FileShareError):
    title = "Authentication failed"


class StorageError(FileShareError):
    """Object storage write failed."""

    title = "Error uploading file"


class FileRecordError(FileShareError):
    """Metadata insert or update failed."""

    title = "Error saving file"


class FileQueryError(FileShareError):
    title = "Error fetching files"


class FileNotFound(FileShareError):
    title = "File not found"
