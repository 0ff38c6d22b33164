"""Periodic trigger for reconciliation passes."""
import time
import threading
from typing import Optional

from paysync.logging_conf import logger
from paysync.engine import PassSummary, ReconciliationEngine


class PassScheduler:
    """Runs `engine.run_pass()` every `interval` seconds on a background thread.

    The next pass is only scheduled after the current one returns, so passes
    from this scheduler never overlap.
    """

    def __init__(self, engine: ReconciliationEngine, interval: int):
        self.engine = engine
        self.interval = interval
        self.running = False
        self.thread = None
        self.last_summary: Optional[PassSummary] = None

    def start(self):
        """Start the scheduler in a background thread."""
        if self.running:
            logger.warning("Scheduler is already running")
            return

        self.running = True
        self.thread = threading.Thread(target=self._run, name="sync-scheduler", daemon=True)
        self.thread.start()
        logger.info(f"Scheduler started (interval: {self.interval}s)")

    def stop(self):
        """Stop the scheduler."""
        if not self.running:
            return

        self.running = False
        if self.thread:
            self.thread.join(timeout=10)
        logger.info("Scheduler stopped")

    def _run(self):
        """Main scheduler loop."""
        while self.running:
            self.tick()

            # Sleep for the interval, waking up to notice stop()
            for _ in range(self.interval):
                if not self.running:
                    break
                time.sleep(1)

    def tick(self) -> Optional[PassSummary]:
        """Run one pass; errors are logged and the loop carries on."""
        try:
            self.last_summary = self.engine.run_pass()
        except Exception as e:
            logger.error(f"Sync pass failed: {e}", exc_info=True)
            return None
        return self.last_summary
