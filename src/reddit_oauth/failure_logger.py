# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

import json
import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Optional

FAILURE_LOGGER_NAME = "reddit_oauth.failures"

failure_logger = logging.getLogger(FAILURE_LOGGER_NAME)


class JsonFormatter(logging.Formatter):
    def format(self, record):
        log_record = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "message": record.msg if isinstance(record.msg, dict) else record.getMessage(),
        }
        return json.dumps(log_record)


def setup_failure_logger(log_dir: str = "logs") -> logging.Logger:
    """Sets up a dedicated JSON log file for failed authorization attempts."""
    os.makedirs(log_dir, exist_ok=True)

    failure_logger.setLevel(logging.INFO)

    # Use a rotating file handler to keep log files from growing too large
    handler = RotatingFileHandler(
        os.path.join(log_dir, "oauth_failures.log"),
        maxBytes=5 * 1024 * 1024,  # 5 MB
        backupCount=2,
    )
    handler.setFormatter(JsonFormatter())

    # Add handler only if it hasn't been added before
    if not any(isinstance(h, RotatingFileHandler) for h in failure_logger.handlers):
        failure_logger.addHandler(handler)
    else:
        handler.close()

    return failure_logger


def _mask(value: Optional[str]) -> Optional[str]:
    if not value:
        return value
    return f"...{value[-4:]}" if len(value) > 4 else "****"


def log_failure(stage: str, error: Exception, state_string: Optional[str] = None):
    """Logs a structured record for a failed authorization attempt or token operation."""
    log_data = {
        "stage": stage,
        "state_ending": _mask(state_string),
        "error_type": type(error).__name__,
        "error_message": str(error),
        "status_code": getattr(error, "status_code", None),
    }
    failure_logger.error(log_data)
