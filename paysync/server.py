"""HTTP endpoints: webhook ingestion and health check."""
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import Body, FastAPI, HTTPException

from paysync.errors import TransientError, ValidationError
from paysync.ingestion import Ingestor
from paysync.logging_conf import logger
from paysync.scheduler import PassScheduler


def create_app(ingestor: Ingestor, scheduler: Optional[PassScheduler] = None) -> FastAPI:
    """
    Build the FastAPI app.

    When a scheduler is given it is started and stopped with the app.
    """
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if scheduler is not None:
            scheduler.start()
        try:
            yield
        finally:
            if scheduler is not None:
                scheduler.stop()

    app = FastAPI(title="paysync", docs_url=None, redoc_url=None, lifespan=lifespan)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    @app.post("/webhook")
    def webhook(payload: Any = Body(...)):
        """Accept one booking platform event."""
        try:
            result = ingestor.ingest(payload)
        except ValidationError as e:
            logger.warning(f"Rejected webhook: {e.reason}")
            raise HTTPException(status_code=400, detail=e.reason)
        except TransientError as e:
            logger.error(f"Could not queue webhook: {e}")
            raise HTTPException(status_code=503, detail="queue unavailable, retry later")
        return {"status": result.status, "event_id": result.event_id}

    return app
