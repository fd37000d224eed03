# FILE: vocoder_cli/utils/logging.py
"""
Unified logging helpers for the vocoder CLI.

- One stderr handler on the package root logger ("%(levelname)s: %(message)s").
- Honors the level from the environment via VOCODER_LOG_LEVEL (e.g. "INFO", "DEBUG").
- Provides small helpers to mask secrets/tokens and compact JSON for log lines.
- Tiny HTTP request/response logging helpers for consistent client traces.
"""

import json
import logging
import os
from contextlib import contextmanager
from typing import Any, Dict, Optional

ROOT_LOGGER_NAME = "vocoder_cli"
LOG_LEVEL_ENV = "VOCODER_LOG_LEVEL"


# ---------------------------
# Level helpers
# ---------------------------

def level_from_string(level_str: Optional[str], default: int = logging.WARNING) -> int:
    """Map string level to logging constant; returns `default` on unknown."""
    if not level_str:
        return default
    level = getattr(logging, str(level_str).upper(), None)
    return level if isinstance(level, int) else default


def _level_from_env(default: int = logging.WARNING) -> int:
    return level_from_string(os.environ.get(LOG_LEVEL_ENV), default=default)


# ---------------------------
# Public logger factory
# ---------------------------

def _root_logger() -> logging.Logger:
    root = logging.getLogger(ROOT_LOGGER_NAME)
    if not root.handlers:
        h = logging.StreamHandler()
        h.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
        root.addHandler(h)
        root.setLevel(_level_from_env())
        root.propagate = False
    return root


def get_logger(name: str = ROOT_LOGGER_NAME) -> logging.Logger:
    """
    Return a logger under the package root.

    Modules call get_logger(__name__); the handler and level live on the root
    "vocoder_cli" logger so one level change (see temporarily()) tunes everything.
    """
    _root_logger()
    if name != ROOT_LOGGER_NAME and not name.startswith(ROOT_LOGGER_NAME + "."):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)


# ---------------------------
# Mask/format utilities
# ---------------------------

def mask_token(tok: Optional[str], *, keep: int = 6) -> str:
    """Mask a token/secret for logs, keeping first `keep` chars."""
    if not tok:
        return "<none>"
    t = str(tok)
    if len(t) <= keep:
        return "*" * len(t)
    return t[:keep] + "…" + ("*" * max(0, len(t) - keep - 1))


def compact_json(obj: Any, limit: int = 1200) -> str:
    """Compact JSON string for logging; truncate if too long."""
    try:
        s = json.dumps(obj, ensure_ascii=False, separators=(",", ":"))
    except (TypeError, ValueError):
        s = str(obj)
    return s if len(s) <= limit else s[:limit] + "…(truncated)"


# ---------------------------
# HTTP trace helpers
# ---------------------------

def log_http_request(
    logger: logging.Logger,
    *,
    method: str,
    url: str,
    params: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, Any]] = None,
) -> None:
    """Consistent request breadcrumb."""
    safe_params = dict(params or {})
    # Never log raw credentials
    for k in list(safe_params.keys()):
        if k.lower() in {"password", "secret", "token", "authorization", "apikey", "api_key"}:
            safe_params[k] = mask_token(str(safe_params[k]))
    logger.info("HTTP %s %s params=%s", method.upper(), url, compact_json(safe_params))
    if headers:
        logger.debug(
            "Headers=%s",
            compact_json({k: ("<redacted>" if k.lower() == "authorization" else v) for k, v in headers.items()}),
        )


def log_http_response(
    logger: logging.Logger,
    *,
    url: str,
    status: int,
    body: Any,
) -> None:
    """Consistent response breadcrumb."""
    level = logging.INFO if 200 <= status < 400 else logging.ERROR
    logger.log(level, "HTTP %s status=%s body=%s", url, status, compact_json(body))


# ---------------------------
# Temporary level override
# ---------------------------

@contextmanager
def temporarily(level: int):
    """
    Temporarily raise/lower the package log level.

    Example:
        with temporarily(logging.DEBUG):
            # noisy section
            ...
    """
    logger = _root_logger()
    old = logger.level
    try:
        logger.setLevel(level)
        yield logger
    finally:
        logger.setLevel(old)
