# sendback/logging_config.py
import logging
import logging.config
from pathlib import Path
from typing import Optional

from sendback.config import Settings, settings as default_settings


def build_logging_config(log_dir: Path, level: str = "INFO") -> dict:
    log_file = log_dir / "app.log"

    return {
        "version": 1,
        "disable_existing_loggers": False,

        "formatters": {
            "standard": {
                "format": "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
            },
            "access": {
                "format": "%(asctime)s | %(levelname)s | uvicorn.access | %(message)s",
            },
        },

        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "standard",
                "level": level,
            },
            "file": {
                "class": "logging.handlers.RotatingFileHandler",
                "formatter": "standard",
                "filename": str(log_file),
                "maxBytes": 5 * 1024 * 1024,  # 5 MB
                "backupCount": 5,
                "encoding": "utf-8",
                "level": level,
            },
            "access_file": {
                "class": "logging.handlers.RotatingFileHandler",
                "formatter": "access",
                "filename": str(log_file),
                "maxBytes": 5 * 1024 * 1024,
                "backupCount": 5,
                "encoding": "utf-8",
                "level": "INFO",
            },
        },

        "loggers": {
            "uvicorn": {
                "handlers": ["console", "file"],
                "level": "INFO",
                "propagate": False,
            },
            "uvicorn.error": {
                "handlers": ["console", "file"],
                "level": "INFO",
                "propagate": False,
            },
            "uvicorn.access": {
                "handlers": ["access_file"],
                "level": "INFO",
                "propagate": False,
            },
            "sendback": {
                "handlers": ["console", "file"],
                "level": level,
                "propagate": False,
            },
        },

        "root": {
            "handlers": ["console", "file"],
            "level": level,
        },
    }


def setup_logging(settings: Optional[Settings] = None) -> None:
    settings = settings or default_settings
    log_dir = Path(settings.LOG_DIR)
    log_dir.mkdir(parents=True, exist_ok=True)
    logging.config.dictConfig(build_logging_config(log_dir, settings.LOG_LEVEL))
    logging.getLogger("sendback").info("Logging initialized (dir=%s)", log_dir)
