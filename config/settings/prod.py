"""
Production settings for Bistro Platform
Strict secrets, PostgreSQL, JSON logs.
"""

import os

from .base import *  # noqa: F403
from .base import validate_production_secret_key

# ===============================================================================
# PRODUCTION FLAGS
# ===============================================================================

DEBUG = False

validate_production_secret_key()

# ===============================================================================
# DATABASE (PostgreSQL, row locks required for redemption)
# ===============================================================================

DATABASES["default"]["CONN_MAX_AGE"] = int(os.environ.get("DB_CONN_MAX_AGE", "60"))  # noqa: F405

# ===============================================================================
# PROMOTIONS ENGINE
# ===============================================================================

PROMOTIONS = {
    **PROMOTIONS,  # noqa: F405
    "QUOTE_ORDERING": os.environ.get("PROMOTIONS_QUOTE_ORDERING", "discount_value"),
    "STACKING_POLICY": os.environ.get("PROMOTIONS_STACKING_POLICY", "best_of_one"),
}

# ===============================================================================
# LOGGING CONFIGURATION (Production)
# ===============================================================================

LOG_DIR = os.environ.get("LOG_DIR", "/var/log/bistro")

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "json": {
            "format": '{"timestamp": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", "message": "%(message)s", "request_id": "%(request_id)s", "order_id": "%(order_id)s"}',
            "datefmt": "%Y-%m-%d %H:%M:%S",
        },
    },
    "filters": {
        "add_request_id": {
            "()": "apps.common.logging.RequestIDFilter",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "json",
            "filters": ["add_request_id"],
        },
        "file": {
            "class": "logging.handlers.RotatingFileHandler",
            "filename": f"{LOG_DIR}/app.log",
            "maxBytes": 10485760,  # 10MB
            "backupCount": 5,
            "formatter": "json",
            "filters": ["add_request_id"],
        },
    },
    "root": {
        "handlers": ["console", "file"],
        "level": "INFO",
    },
    "loggers": {
        "django": {
            "handlers": ["console", "file"],
            "level": "INFO",
            "propagate": False,
        },
        "apps": {
            "handlers": ["console", "file"],
            "level": "INFO",
            "propagate": False,
        },
    },
}
