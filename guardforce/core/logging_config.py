import logging
import logging.config
import os
from datetime import datetime
from typing import Any, Dict, List
from guardforce.core.config import settings

audit_logger = logging.getLogger("guardforce.audit")

DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
FORMATTERS = {
    "default": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    "detailed": "%(asctime)s - %(name)s - %(levelname)s - %(module)s - %(funcName)s:%(lineno)d - %(message)s",
    "access": "%(asctime)s - %(message)s",
    "audit": "%(asctime)s - AUDIT - %(message)s",
}
# sub directory -> (handler level, formatter)
LOG_FILES = {
    "app": (None, "detailed"),
    "error": ("ERROR", "detailed"),
    "access": ("INFO", "access"),
    "audit": ("INFO", "audit"),
    "celery": ("INFO", "detailed"),
}
MAX_LOG_BYTES = 10 * 1024 * 1024
LOG_BACKUPS = 10


def _file_handlers(log_dir: str) -> Dict[str, dict]:
    stamp = datetime.now().strftime("%Y-%m-%d")
    handlers = {}
    for name, (level, formatter) in LOG_FILES.items():
        os.makedirs(os.path.join(log_dir, name), exist_ok=True)
        handlers[f"{name}_file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "level": level or settings.LOG_LEVEL,
            "formatter": formatter,
            "filename": os.path.join(log_dir, name, f"{name}-{stamp}.log"),
            "maxBytes": MAX_LOG_BYTES,
            "backupCount": LOG_BACKUPS,
        }
    return handlers


def _route(level: str, handlers: List[str]) -> dict:
    return {"level": level, "handlers": handlers, "propagate": False}


def setup_logging():
    """Configure console logging, plus rotating per-concern files when LOG_TO_FILE is on"""
    handlers: Dict[str, dict] = {
        "console": {
            "class": "logging.StreamHandler",
            "level": settings.LOG_LEVEL,
            "formatter": "default",
            "stream": "ext://sys.stdout",
        },
    }
    to_file = settings.LOG_TO_FILE
    if to_file:
        handlers.update(_file_handlers(settings.LOG_DIR))

    def targets(*files: str, console: bool = True) -> List[str]:
        selected = [f"{name}_file" for name in files] if to_file else []
        if console or not selected:
            selected.insert(0, "console")
        return selected

    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            name: {"format": fmt, "datefmt": DATE_FORMAT} for name, fmt in FORMATTERS.items()
        },
        "handlers": handlers,
        "loggers": {
            "": _route(settings.LOG_LEVEL, targets("app", "error")),
            "guardforce.audit": _route("INFO", targets("audit", "app")),
            "celery": _route("INFO", targets("celery")),
            "access": _route("INFO", targets("access", console=False)),
            "uvicorn.access": _route("INFO", targets("access", console=False)),
            # query echo stays off unless something goes wrong
            "sqlalchemy.engine": _route("WARNING", targets("app")),
        },
    })

    logger = logging.getLogger(__name__)
    logger.info(f"GuardForce back office logging configured at {settings.LOG_LEVEL}")
    if to_file:
        logger.info(f"Log files under {os.path.abspath(settings.LOG_DIR)}")


def log_user_action(user_id: Any, action: str, entity: str, entity_id: Any = None):
    """Write one audit line for a state-changing user action"""
    audit_logger.info(f"User {user_id} performed {action} on {entity} {entity_id or ''}".rstrip())
