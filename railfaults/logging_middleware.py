"""Audit log of every HTTP request the API serves.

One line per request goes to ``<log_dir>/<service>.log``. Client errors are
logged at WARNING and server failures at ERROR so upload and closure problems
stand out when scanning the file. Credentials are never written; only the
username a request authenticated as.
"""
from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from time import perf_counter
from typing import Optional

from fastapi import FastAPI, Request

from .config import get_settings

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(message)s"
MAX_LOG_BYTES = 5 * 1024 * 1024
LOG_BACKUPS = 5


def _build_logger(service_name: str) -> logging.Logger:
    logger = logging.getLogger(f"audit.{service_name}")
    if logger.handlers:
        return logger

    log_dir = Path(get_settings().log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        log_dir / f"{service_name}.log", maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUPS, encoding="utf-8"
    )
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    return logger


def _level_for(status_code: int) -> int:
    if status_code >= 500:
        return logging.ERROR
    if status_code >= 400:
        return logging.WARNING
    return logging.INFO


def add_audit_middleware(app: FastAPI, service_name: str) -> None:
    logger = _build_logger(service_name)

    @app.middleware("http")
    async def audit_logger(request: Request, call_next):  # type: ignore[override]
        start = perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            client_ip: Optional[str] = request.client.host if request.client else None
            logger.log(
                _level_for(status_code),
                "%s %s | status=%s | user=%s | client=%s | bytes_in=%s | duration=%.2fms",
                request.method,
                request.url.path,
                status_code,
                getattr(request.state, "username", None) or "-",
                client_ip or "unknown",
                request.headers.get("content-length", "0"),
                (perf_counter() - start) * 1000,
            )
