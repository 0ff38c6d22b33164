"""Main application - serves the webhook and runs periodic sync passes."""
import sys

import uvicorn

from paysync.logging_conf import logger
from paysync import settings
from paysync.amo_client import AmoClient
from paysync.engine import ReconciliationEngine
from paysync.ingestion import Ingestor
from paysync.queue.sheet_queue import SheetQueue
from paysync.resolver import LeadResolver
from paysync.scheduler import PassScheduler
from paysync.server import create_app


class Application:
    """Wires the queue, CRM client, engine and HTTP shell together."""

    def __init__(self):
        self.config = settings.load_sync_config()
        self.queue = SheetQueue(self.config.spreadsheet_id, self.config.sheet_name)
        self.client = AmoClient(self.config)
        self.resolver = LeadResolver(self.client, self.config)
        self.engine = ReconciliationEngine(self.queue, self.client, self.resolver, self.config)
        self.ingestor = Ingestor(self.queue)
        self.scheduler = PassScheduler(self.engine, settings.SYNC_INTERVAL)

    def start(self):
        """Log the configuration summary and validate it."""
        logger.info("=" * 50)
        logger.info("Payments -> amoCRM sync")
        logger.info("=" * 50)
        logger.info(f"CRM: {self.config.amo_base_url}")
        logger.info(f"Pipeline: {self.config.pipeline_id}")
        logger.info(f"Sheet: {self.config.sheet_name}")
        logger.info(f"Sync interval: {settings.SYNC_INTERVAL}s")
        logger.info("=" * 50)

        settings.validate_config()

    def run(self):
        """Serve HTTP until interrupted; the scheduler lives with the app."""
        self.start()
        app = create_app(self.ingestor, self.scheduler)
        uvicorn.run(app, host="0.0.0.0", port=settings.PORT, log_config=None)
        logger.info("Stopped")


def main():
    """Entry point."""
    try:
        Application().run()
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
