from __future__ import annotations

import asyncio
import logging

from fastapi import FastAPI

from common.config import IngestSettings, StoreSettings
from common.schemas import SessionStatus
from ingest_service.blob_store import get_store
from ingest_service.orchestrator import SessionOrchestrator

logger = logging.getLogger(__name__)

settings = IngestSettings()
app = FastAPI(title="Segment Ingest Service")

orchestrator: SessionOrchestrator | None = None
_session_task: asyncio.Task | None = None


@app.on_event("startup")
async def startup():
    global orchestrator, _session_task
    if not settings.input_file:
        logger.info("No input file configured, not starting a session")
        return
    try:
        store = get_store(StoreSettings())
    except RuntimeError:
        logger.exception("Blob store unavailable, not starting a session")
        return
    orchestrator = SessionOrchestrator(settings, store)
    _session_task = asyncio.create_task(orchestrator.run(settings.input_file))


@app.get("/health")
async def health():
    state = orchestrator.state if orchestrator else None
    return {"status": "ok", "session_state": state}


@app.get("/status", response_model=SessionStatus)
async def status():
    if orchestrator is None:
        return SessionStatus()
    return orchestrator.status()


if __name__ == "__main__":
    import uvicorn
    logging.basicConfig(
        level=settings.log_level,
        format="[%(asctime)s] %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(app, host=settings.host, port=settings.port)
