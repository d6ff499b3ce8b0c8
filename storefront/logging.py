"""
Logging for the storefront cart core.

The root logger is configured once, on import:
- level from LOG_LEVEL (default INFO)
- stdout handler; short format when running on Vercel (VERCEL=1)
- transport chatter from the Supabase/Upstash HTTP clients held at WARNING

Device ids, user ids and product ids come from clients, so anything logged
about an owner or a product goes through `safe_id` / `describe_owner`.

Usage:
    from storefront.logging import get_logger, describe_owner
    logger = get_logger(__name__)
    logger.info(f"Cleared cart of {describe_owner(identity)}")
"""

import logging
import os
import sys
from functools import cache

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_FORMAT_SIMPLE = "%(levelname)s - %(name)s - %(message)s"

# Loggers of the HTTP stack underneath supabase-py and upstash-redis
NOISY_LOGGERS = ("httpx", "httpcore", "hpack")

ID_LOG_LENGTH = 8

# Control characters that could forge extra log lines (CWE-117)
_UNSAFE_CHARS = str.maketrans({"\n": "\\n", "\r": "\\r", "\t": "\\t", "\x00": None})


def _level_from_env() -> int:
    name = os.environ.get("LOG_LEVEL", "INFO").upper()
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO


def _configure_root_logger() -> None:
    root = logging.getLogger()
    if root.handlers:
        # Host (uvicorn, pytest) already configured logging
        return

    level = _level_from_env()
    on_vercel = os.environ.get("VERCEL") == "1"

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT_SIMPLE if on_vercel else LOG_FORMAT))

    root.setLevel(level)
    root.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


_configure_root_logger()


@cache
def get_logger(name: str) -> logging.Logger:
    """Logger for a module; pass __name__."""
    return logging.getLogger(name)


def safe_id(value) -> str:
    """Client-supplied id, escaped and cut to its first 8 characters."""
    if value is None or value == "":
        return "N/A"
    return str(value).translate(_UNSAFE_CHARS)[:ID_LOG_LENGTH]


def describe_owner(identity) -> str:
    """Cart owner for log lines, e.g. "user 3f2a9c1d" or "anonymous 8b1e0f77"."""
    return f"{identity.kind} {safe_id(identity.id)}"


__all__ = [
    "LOG_FORMAT",
    "LOG_FORMAT_SIMPLE",
    "get_logger",
    "safe_id",
    "describe_owner",
]
