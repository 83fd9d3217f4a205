import re
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from app.core.exceptions import FileNotFound, FileRecordError, StorageError
from app.models.file import FileRecord
from app.services.auth import UserSession
from app.services.files import (
    build_storage_key,
    read_shared_with,
    share_file,
    split_extension,
    upload_file,
    write_shared_with,
)


@pytest.mark.parametrize("filename, expected", [
    ("a.txt", "txt"),
    ("archive.tar.gz", "gz"),
    ("README", ""),
    ("trailing.", ""),
])
def test_split_extension(filename, expected):
    assert split_extension(filename) == expected


def test_storage_key_is_random_and_keeps_extension():
    first, second = build_storage_key("pdf"), build_storage_key("pdf")

    assert first != second
    assert first.endswith(".pdf")
    assert "." not in build_storage_key("")


# --- upload ---

def test_upload_round_trip(db_session, storage, alice):
    record = upload_file(db_session, storage, alice, "a.txt", "text/plain", b"hello world")

    assert record.extension == "txt"
    assert record.filename == "a.txt"
    assert record.type == "text/plain"
    assert record.user_id == alice.user_id
    assert record.fullname == "Alice Liddell"
    assert record.shared_with == []
    assert storage.fetch(record.public_url) == b"hello world"
    # the storage key is random hex plus the extension, not the original name
    assert re.fullmatch(r"[0-9a-f]{32}\.txt", record.public_url.rsplit("/", 1)[1])


def test_upload_fullname_falls_back_to_email_then_unknown(db_session, storage, bob):
    record = upload_file(db_session, storage, bob, "b.bin", None, b"\x00")

    assert record.fullname == "bob@example.com"
    assert record.type == "application/octet-stream"

    anonymous = UserSession(user_id=bob.user_id, email="", token="x")
    assert anonymous.display_name == "Unknown"


def test_upload_storage_failure_inserts_nothing(db_session, storage, alice):
    storage.fail_put = True

    with pytest.raises(StorageError):
        upload_file(db_session, storage, alice, "a.txt", "text/plain", b"data")

    assert db_session.query(FileRecord).count() == 0


def test_upload_insert_failure_leaves_orphaned_object(storage, alice):
    db = MagicMock()
    db.commit.side_effect = OperationalError("INSERT", {}, Exception("disk I/O error"))

    with pytest.raises(FileRecordError) as excinfo:
        upload_file(db, storage, alice, "a.txt", "text/plain", b"data")

    assert "disk I/O error" in excinfo.value.message
    assert excinfo.value.title == "Error uploading file"
    db.rollback.assert_called_once()
    assert len(storage.objects) == 1


# --- share ---

@pytest.fixture()
def bobs_file(db_session, storage, bob):
    return upload_file(db_session, storage, bob, "plan.pdf", "application/pdf", b"%PDF")


def test_share_appends(db_session, bob, bobs_file):
    share_file(db_session, bob, bobs_file.id, "alice@example.com")
    record = share_file(db_session, bob, bobs_file.id, "carol@example.com")

    assert record.shared_with == ["alice@example.com", "carol@example.com"]


def test_share_same_email_twice_keeps_duplicate(db_session, bob, bobs_file):
    share_file(db_session, bob, bobs_file.id, "alice@example.com")
    record = share_file(db_session, bob, bobs_file.id, "alice@example.com")

    assert record.shared_with == ["alice@example.com", "alice@example.com"]


def test_share_normalises_email(db_session, bob, bobs_file):
    record = share_file(db_session, bob, bobs_file.id, "  Alice@Example.COM ")

    assert record.shared_with == ["alice@example.com"]


def test_share_tolerates_null_recipients(db_session, bob, bobs_file):
    db_session.execute(FileRecord.__table__.update().values(shared_with=None).where(FileRecord.id == bobs_file.id))
    db_session.commit()
    db_session.expire_all()

    record = share_file(db_session, bob, bobs_file.id, "alice@example.com")

    assert record.shared_with == ["alice@example.com"]


def test_share_makes_file_visible_to_recipient(db_session, alice, bob, bobs_file):
    share_file(db_session, bob, bobs_file.id, alice.email)

    # recipients can pass the file on
    record = share_file(db_session, alice, bobs_file.id, "carol@example.com")
    assert record.shared_with == [alice.email, "carol@example.com"]


def test_share_of_invisible_file_is_not_found(db_session, carol, bobs_file):
    with pytest.raises(FileNotFound):
        share_file(db_session, carol, bobs_file.id, "carol@example.com")


@pytest.mark.parametrize("file_id, email", [("", "a@example.com"), ("some-id", ""), ("some-id", "   ")])
def test_share_requires_target_and_email(db_session, bob, file_id, email):
    with pytest.raises(ValueError):
        share_file(db_session, bob, file_id, email)


def test_write_failure_is_wrapped(bob):
    db = MagicMock()
    db.commit.side_effect = OperationalError("UPDATE", {}, Exception("readonly database"))

    with pytest.raises(FileRecordError):
        write_shared_with(db, "file-id", ["a@example.com"])

    db.rollback.assert_called_once()


def test_interleaved_shares_lose_an_email(db_session, bob, bobs_file):
    # two read-modify-write sequences racing: both read before either writes
    first = read_shared_with(db_session, bob, bobs_file.id)
    second = read_shared_with(db_session, bob, bobs_file.id)

    write_shared_with(db_session, bobs_file.id, first + ["alice@example.com"])
    record = write_shared_with(db_session, bobs_file.id, second + ["carol@example.com"])

    assert record.shared_with == ["carol@example.com"]
