# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/libum

import logging
import os

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logger(name: str = "libum", log_file: str | None = None, level: str | int | None = None) -> logging.Logger:
    """Configure and return the package logger.

    Handlers are only attached once, so repeated calls are safe.

    Args:
        name: Logger name.
        log_file: Optional file to log to. Defaults to LIBUM_LOG_FILE if set.
        level: Log level. Defaults to LIBUM_LOG_LEVEL or INFO.
    """
    if level is None:
        level = os.getenv("LIBUM_LOG_LEVEL", "INFO").upper()
    if log_file is None:
        log_file = os.getenv("LIBUM_LOG_FILE") or None

    log = logging.getLogger(name)
    log.setLevel(level)

    if not log.handlers:
        formatter = logging.Formatter(LOG_FORMAT)

        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        log.addHandler(console_handler)

        if log_file:
            file_handler = logging.FileHandler(log_file, encoding="utf-8")
            file_handler.setFormatter(formatter)
            log.addHandler(file_handler)

    return log


logger = setup_logger()
