"""Logging setup.

Modules log through a handful of named loggers, one per concern, so a single
area can be turned up without flooding the rest:

    upload      video and avatar uploads
    publish     dispatcher fan-out and per-post outcomes
    oauth       connect / callback / disconnect flows
    youtube, tiktok, instagram
                vendor API calls for that platform
    security    state mismatches, auth failures, account deletion
    api_access  one line per request
    profile     profile and avatar changes

``LOG_LEVEL`` sets the baseline; ``LOG_LEVELS`` overrides individual loggers,
e.g. ``LOG_LEVELS=publish=DEBUG,api_access=WARNING``.
"""
import logging
from typing import Dict

from app.core.config import settings

PROJECT_LOGGERS = (
    "upload", "publish", "oauth", "youtube", "tiktok", "instagram",
    "security", "api_access", "profile",
)

# Chatty at INFO: one line per HTTP request or S3 call
QUIET_LIBRARIES = ("urllib3", "httpx", "httpcore", "botocore", "boto3", "s3transfer")

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _level(name: str, default: int = logging.INFO) -> int:
    level = logging.getLevelName(name.strip().upper())
    return level if isinstance(level, int) else default


def parse_log_levels(value: str) -> Dict[str, int]:
    """Parse ``name=LEVEL`` pairs; malformed pairs and unknown levels are skipped"""
    levels = {}
    for pair in (value or "").split(","):
        name, sep, level = pair.partition("=")
        name = name.strip()
        if not sep or not name:
            continue
        parsed = logging.getLevelName(level.strip().upper())
        if isinstance(parsed, int):
            levels[name] = parsed
    return levels


def setup_logging() -> None:
    base_level = _level(settings.LOG_LEVEL)
    logging.basicConfig(
        level=base_level,
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True
    )

    for name in PROJECT_LOGGERS:
        logging.getLogger(name).setLevel(base_level)
    for name in QUIET_LIBRARIES:
        logging.getLogger(name).setLevel(max(base_level, logging.WARNING))

    for name, level in parse_log_levels(settings.LOG_LEVELS).items():
        logging.getLogger(name).setLevel(level)
