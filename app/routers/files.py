from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Request, Depends, Form, Query, UploadFile, File as FastAPIFile, HTTPException
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from app.core.exceptions import FileQueryError, FileShareError
from app.core.logger import logger
from app.models.database import get_db
from app.schemas.file import FileListResponse, FileQuery, FileRead, SORT_COLUMNS
from app.services.auth import get_current_session
from app.services.files import list_visible_files, share_file, upload_file
from app.services.screen import ScreenState, screens
from app.services.storage import ObjectStorage, get_storage

BASE_DIR = Path(__file__).resolve().parent.parent

router = APIRouter()
templates = Jinja2Templates(directory=str(BASE_DIR / "templates"))


# --- auth gate: resolve the session and its screen, or None ---
def open_screen(request: Request, db: Session) -> Optional[ScreenState]:
    session = get_current_session(request, db)
    if session is None:
        return None
    return screens.open(session)


def to_auth() -> RedirectResponse:
    return RedirectResponse(url="/auth", status_code=303)


def refresh_files(db: Session, state: ScreenState, query: Optional[FileQuery] = None):
    """Reload the visible files; on error keep the previous list and notify."""
    try:
        rows = list_visible_files(db, state.session, query)
    except FileQueryError as exc:
        state.notify_error(exc.title, exc.message)
        return
    if rows is not None:
        state.files = [FileRead.model_validate(row) for row in rows]


def render_screen(request: Request, state: ScreenState, query: Optional[FileQuery] = None, share_email: str = ""):
    return templates.TemplateResponse(
        request,
        "home.html",
        {
            "session": state.session,
            "files": state.files,
            "share_target": state.share_target,
            "share_email": share_email,
            "uploading": state.uploading,
            "notification": state.pop_notification(),
            "query": query or FileQuery(),
            "sort_columns": SORT_COLUMNS,
        },
    )


# --- the files screen ---
@router.get("/files", response_class=HTMLResponse)
def list_files(
    request: Request,
    db: Session = Depends(get_db),
    search: Optional[str] = None,
    file_type: Optional[str] = Query(None, alias="type"),
    sort: Optional[str] = None,
    limit: Optional[str] = None,
    share: Optional[str] = None,
):
    state = open_screen(request, db)
    if state is None:
        return to_auth()

    query = FileQuery(search=search, type=file_type, sort=sort, limit=limit)
    if share:
        state.share_target = share

    refresh_files(db, state, query)
    return render_screen(request, state, query)


# --- upload a new file ---
@router.post("/upload")
async def handle_upload(
    request: Request,
    upload: Optional[UploadFile] = FastAPIFile(None),
    db: Session = Depends(get_db),
    storage: ObjectStorage = Depends(get_storage),
):
    state = open_screen(request, db)
    if state is None:
        return to_auth()

    if upload is None or not upload.filename:
        state.notify_error("Error uploading file", "No file selected")
        return render_screen(request, state)

    failure = None
    state.uploading = True
    try:
        content = await upload.read()
        # boto3 and SQLAlchemy calls block
        await run_in_threadpool(
            upload_file, db, storage, state.session, upload.filename, upload.content_type, content
        )
    except FileShareError as exc:
        failure = exc
    finally:
        state.uploading = False

    if failure is not None:
        state.notify_error(failure.title, failure.message)
        return render_screen(request, state)

    state.notify("Success", "File uploaded successfully")
    return RedirectResponse(url="/files", status_code=303)


# --- append a recipient to a file ---
@router.post("/share")
def handle_share(
    request: Request,
    file_id: str = Form(""),
    email: str = Form(""),
    db: Session = Depends(get_db),
):
    state = open_screen(request, db)
    if state is None:
        return to_auth()

    target = file_id or state.share_target
    if not target or not email.strip():
        state.notify_error("Error sharing file", "Choose a file and enter an email to share with")
        return render_screen(request, state, share_email=email)

    state.share_target = target
    try:
        share_file(db, state.session, target, email)
    except FileShareError as exc:
        logger.info(f"Share of {target} by user {state.session.user_id} failed: {exc.message}")
        state.notify_error(exc.title, exc.message)
        return render_screen(request, state, share_email=email)

    state.share_target = None
    state.notify("Success", f"File shared with {email.strip()}")
    return RedirectResponse(url="/files", status_code=303)


# --- same listing as JSON ---
@router.get("/api/files", response_model=FileListResponse)
def api_list_files(
    request: Request,
    db: Session = Depends(get_db),
    search: Optional[str] = None,
    file_type: Optional[str] = Query(None, alias="type"),
    sort: Optional[str] = None,
    limit: Optional[str] = None,
):
    session = get_current_session(request, db)
    if session is None:
        raise HTTPException(status_code=401, detail="Not authenticated")

    query = FileQuery(search=search, type=file_type, sort=sort, limit=limit)
    try:
        rows = list_visible_files(db, session, query)
    except FileQueryError as exc:
        return FileListResponse(success=False, error=exc.message or "Failed to fetch files")

    return FileListResponse(success=True, data=[FileRead.model_validate(row) for row in rows or []])
