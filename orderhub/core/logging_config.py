import logging
import logging.config
import os
from datetime import datetime
from orderhub.core.config import settings

def setup_logging():
    """Setup application logging configuration"""

    # Create logs directory if it doesn't exist
    for folder in ("app", "access", "error", "celery", "payments"):
        os.makedirs(f"logs/{folder}", exist_ok=True)

    current_date = datetime.now().strftime("%Y-%m-%d")

    def rotating(level: str, formatter: str, folder: str) -> dict:
        return {
            "class": "logging.handlers.RotatingFileHandler",
            "level": level,
            "formatter": formatter,
            "filename": f"logs/{folder}/{folder}-{current_date}.log",
            "maxBytes": 10485760,  # 10MB
            "backupCount": 10,
        }

    logging_config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
            "detailed": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(module)s - %(funcName)s:%(lineno)d - %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
            "access": {
                "format": "%(asctime)s - %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": settings.LOG_LEVEL,
                "formatter": "default",
                "stream": "ext://sys.stdout",
            },
            "app_file": rotating(settings.LOG_LEVEL, "detailed", "app"),
            "error_file": rotating("ERROR", "detailed", "error"),
            "access_file": rotating("INFO", "access", "access"),
            "celery_file": rotating("INFO", "detailed", "celery"),
            # Orphaned gateway references and failed post-payment bookkeeping land here
            "payments_file": rotating("INFO", "detailed", "payments"),
        },
        "loggers": {
            "": {  # Root logger
                "level": settings.LOG_LEVEL,
                "handlers": ["console", "app_file", "error_file"],
                "propagate": False,
            },
            "orderhub.services.payment": {
                "level": "INFO",
                "handlers": ["payments_file", "console", "error_file"],
                "propagate": False,
            },
            "orderhub.workers": {
                "level": "INFO",
                "handlers": ["celery_file", "console"],
                "propagate": False,
            },
            "celery": {
                "level": "INFO",
                "handlers": ["celery_file", "console"],
                "propagate": False,
            },
            "access": {
                "level": "INFO",
                "handlers": ["access_file"],
                "propagate": False,
            },
            "uvicorn.access": {
                "level": "INFO",
                "handlers": ["access_file"],
                "propagate": False,
            },
            "sqlalchemy.engine": {
                "level": "WARNING",  # Reduce DB query noise
                "handlers": ["app_file"],
                "propagate": False,
            },
        },
    }

    logging.config.dictConfig(logging_config)

    logger = logging.getLogger(__name__)
    logger.info("OrderHub - Logging configured")
    logger.info(f"Log level: {settings.LOG_LEVEL}")
