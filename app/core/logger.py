# app/core/logger.py
import sys
from pathlib import Path

from loguru import logger

from app.core.config import get_settings

settings = get_settings()

log_dir = Path(settings.log_dir)
log_dir.mkdir(parents=True, exist_ok=True)

# drop loguru's default handler so we control the format
logger.remove()

logger.add(
    sys.stderr,
    level=settings.log_level,
    colorize=True,
    backtrace=True,
    diagnose=False,
    format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
           "<level>{level: <8}</level> | "
           "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
           "<level>{message}</level>",
)

logger.add(
    log_dir / "fileshare.log",
    level="DEBUG",
    rotation="10 MB",
    retention="7 days",
    encoding="utf-8",
    enqueue=True,
)

logger.debug("Logging initialised")
