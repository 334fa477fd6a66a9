"""
Process bootstrap: logging, schema and default stock.

Callers import `init_db()` once at startup and then open sessions from
`db.SessionLocal` (or `db.session_scope()`) for each command.
"""
import os
from typing import Optional

import structlog
from sqlalchemy import inspect

from .config import settings
from .db import Base, SessionLocal, engine, session_scope
from .logging import setup_logging
from .models import models  # noqa: F401  registers tables on Base.metadata
from .services.inventory import seed_wood_inventory


logger = structlog.get_logger(__name__)


def init_db(bind=None, session_factory=None, seed: Optional[bool] = None) -> None:
    bind = bind or engine
    # Ensure local SQLite directory exists
    if str(bind.url).startswith("sqlite:///./"):
        os.makedirs("var", exist_ok=True)

    if settings.auto_create_db:
        existing_tables = set(inspect(bind).get_table_names())
        missing = set(Base.metadata.tables.keys()) - existing_tables
        if missing:
            logger.info("creating_tables", tables=sorted(missing))
            Base.metadata.create_all(bind=bind)

    if seed is None:
        seed = settings.seed_wood_inventory
    if seed:
        with session_scope(session_factory or SessionLocal) as db:
            seed_wood_inventory(db)


def startup() -> None:
    setup_logging()
    logger.info("startup", app=settings.app_name, environment=settings.environment)
    init_db()


if __name__ == "__main__":
    startup()
