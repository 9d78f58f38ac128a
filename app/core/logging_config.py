# app/core/logging_config.py
"""
Logging setup shared by the API, the scheduler and the ``catalog-sync`` CLI.

Sync engine loggers (``app.services.*``, ``app.scheduler``, ``app.cli``) log at
LOG_LEVEL. Stripe transport chatter from httpx/httpcore and SQL echo from the
database drivers stay at WARNING.
"""

import logging
import os
from typing import Optional

QUIET_LOGGERS = (
    "httpx",
    "httpcore",
    "sqlalchemy",
    "sqlalchemy.engine",
    "asyncpg",
    "aiosqlite",
    "apscheduler",
    "alembic",
)


def configure_logging(level: Optional[str] = None):
    """Configure root logging; ``level`` overrides the LOG_LEVEL environment variable."""
    log_level = (level or os.environ.get("LOG_LEVEL", "INFO")).upper()
    numeric_level = getattr(logging, log_level, logging.INFO)

    logging.basicConfig(
        level=numeric_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler()]
    )

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger("app").setLevel(numeric_level)
    logging.getLogger("__main__").setLevel(numeric_level)

    logging.getLogger(__name__).debug(f"Logging configured at level: {log_level}")
