"""
Budget Tracker API Entry Point.

Bootstraps the dependency graph via constructor injection and serves
the FastAPI application with uvicorn.  Every subsystem is wired here;
no module-level globals.

Usage::

    python main.py
"""

from __future__ import annotations

import atexit
import sys

import uvicorn

from app.api import create_app
from app.config import get_config
from app.database import DatabaseManager, JsonFileStore
from app.logger import StructuredLogger, get_logger
from app.models.enums import StorageMode
from app.repositories.storage import create_storage
from app.services import create_services


def main() -> None:
    """Application entry point: wire dependencies and start the server."""
    logger: StructuredLogger = get_logger("main")
    logger.info("Starting Budget Tracker API...")

    # ------------------------------------------------------------------
    # 1. Configuration (from .env / environment variables)
    # ------------------------------------------------------------------
    config = get_config()

    # ------------------------------------------------------------------
    # 2. Storage target selected by STORAGE_MODE
    # ------------------------------------------------------------------
    storage_logger = StructuredLogger(name="storage")
    if config.STORAGE_MODE == StorageMode.DATABASE:
        db = DatabaseManager(
            supabase_url=config.SUPABASE_URL,
            supabase_key=config.supabase_key,
            logger=storage_logger,
        )
        atexit.register(db.close)
        storage = create_storage(config, storage_logger, db=db)
    else:
        store = JsonFileStore(
            data_dir=config.LOCALSTORAGE_PATH,
            persist=config.LOCALSTORAGE_PERSIST,
            logger=storage_logger,
        )
        atexit.register(store.close)
        storage = create_storage(config, storage_logger, store=store)

    # ------------------------------------------------------------------
    # 3. Service Container (repositories + services, single composition root)
    # ------------------------------------------------------------------
    services = create_services(storage=storage, config=config)

    # ------------------------------------------------------------------
    # 4. HTTP application
    # ------------------------------------------------------------------
    app = create_app(config=config, services=services, logger=get_logger("api"))

    logger.info(
        "Listening on %s:%d (environment=%s)", config.HOST, config.PORT, config.ENVIRONMENT,
    )
    uvicorn.run(app, host=config.HOST, port=config.PORT, log_level=config.LOG_LEVEL.lower())
    logger.info("Budget Tracker API shut down.")


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        pass
    except Exception as exc:
        sys.stderr.write(f"FATAL: {type(exc).__name__}: {exc}\n")
        sys.exit(1)
