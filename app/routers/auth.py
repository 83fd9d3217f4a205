from pathlib import Path

from fastapi import APIRouter, Request, Form, Depends
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.exceptions import AuthError
from app.models.database import get_db
from app.services.auth import UserSession, get_current_session, sign_in, sign_out, sign_up

BASE_DIR = Path(__file__).resolve().parent.parent

router = APIRouter(prefix="/auth")
templates = Jinja2Templates(directory=str(BASE_DIR / "templates"))


def _signed_in_response(session: UserSession) -> RedirectResponse:
    response = RedirectResponse(url="/files", status_code=303)
    settings = get_settings()
    response.set_cookie(
        settings.session_cookie_name,
        session.token,
        max_age=settings.session_max_age_hours * 3600,
        httponly=True,
        samesite="lax",
    )
    return response


def _auth_page(request: Request, error: AuthError = None, email: str = "", mode: str = "signin"):
    return templates.TemplateResponse(
        request,
        "auth.html",
        {"error": error, "email": email, "mode": mode},
    )


@router.get("", response_class=HTMLResponse)
def auth_page(request: Request, db: Session = Depends(get_db)):
    if get_current_session(request, db):
        return RedirectResponse(url="/files", status_code=303)
    return _auth_page(request)


@router.post("/signup")
def signup(
    request: Request,
    email: str = Form(...),
    password: str = Form(...),
    full_name: str = Form(""),
    db: Session = Depends(get_db),
):
    try:
        session = sign_up(db, email, password, full_name)
    except AuthError as exc:
        return _auth_page(request, exc, email, mode="signup")
    return _signed_in_response(session)


@router.post("/signin")
def signin(request: Request, email: str = Form(...), password: str = Form(...), db: Session = Depends(get_db)):
    try:
        session = sign_in(db, email, password)
    except AuthError as exc:
        return _auth_page(request, exc, email)
    return _signed_in_response(session)


@router.post("/signout")
def signout(request: Request, db: Session = Depends(get_db)):
    session = get_current_session(request, db)
    if session is not None:
        sign_out(db, session)

    response = RedirectResponse(url="/auth", status_code=303)
    response.delete_cookie(get_settings().session_cookie_name)
    return response
