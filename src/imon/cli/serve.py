# src/imon/cli/serve.py

"""
Service entrypoint.

Initializes logging, builds the document store and the Flask app, then serves
requests on a threaded development server until interrupted.
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..logging_setup import setup_logging
from ..records.clock import TaskClock
from ..service.app import create_app
from ..storage.document_store import DocumentStore
from ..storage.record_store import RecordStore

logger = logging.getLogger(__name__)


def main() -> None:
    settings = get_settings()

    level_name = str(settings.log_level).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    log_file = setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logger.info("Starting %s (logs: %s)...", settings.app_name, log_file)

    documents = DocumentStore(
        settings.store_path,
        pool_size=settings.store_pool_size,
        acquire_timeout=settings.store_acquire_timeout,
        call_timeout=settings.store_call_timeout,
    )
    logger.info("Records stored in %s", documents.db_path)
    app = create_app(settings, store=RecordStore(documents, TaskClock()))

    try:
        app.run(host=settings.host, port=settings.port, threaded=True)
    finally:
        documents.close()
        logger.info("Bye.")


if __name__ == "__main__":
    main()
