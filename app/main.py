from pathlib import Path

import uvicorn
from fastapi import FastAPI, Request, Depends
from fastapi.responses import RedirectResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy.orm import Session

from app.core.logger import logger
from app.models.database import Base, engine, get_db
from app.routers import auth, files
from app.services.auth import get_current_session

BASE_DIR = Path(__file__).resolve().parent

Base.metadata.create_all(bind=engine)

app = FastAPI(title="fileshare")

app.mount("/static", StaticFiles(directory=str(BASE_DIR / "static")), name="static")

# include our routers
app.include_router(auth.router)
app.include_router(files.router)

logger.info("fileshare started")


@app.get("/")
def home(request: Request, db: Session = Depends(get_db)):
    if get_current_session(request, db):
        return RedirectResponse(url="/files", status_code=303)
    return RedirectResponse(url="/auth", status_code=303)


if __name__ == "__main__":
    uvicorn.run("app.main:app", host="0.0.0.0", port=8000, log_level="info")
