from __future__ import annotations

import logging
import time
from pathlib import Path

from common.config import IngestSettings
from common.schemas import SessionState, SessionStatus
from ingest_service.blob_store import BlobStore
from ingest_service.models import IngestSession
from ingest_service.segmenter import Segmenter
from ingest_service.transcript import TranscriptUpdater
from ingest_service.watcher import SegmentWatcher

logger = logging.getLogger(__name__)


def new_session_id() -> str:
    return str(int(time.time() * 1000))


class SessionOrchestrator:
    """Top-level sequencing of one ingestion run.

    Failures at any stage are logged and recorded in the status; nothing is
    raised to the caller and the session is not retried.
    """

    def __init__(self, settings: IngestSettings, store: BlobStore) -> None:
        self.settings = settings
        self.store = store
        self.updater = TranscriptUpdater(settings.transcript_file, store, title=settings.transcript_title)
        self.segmenter = Segmenter(settings, store)
        self.session: IngestSession | None = None
        self.watcher: SegmentWatcher | None = None
        self.state = SessionState.idle
        self.detail: str | None = None

    async def run(self, input_file: str | Path) -> None:
        try:
            logger.info("Starting stream ingest for %s", input_file)
            self.updater.reset()

            session_id = new_session_id()
            self.session = IngestSession(
                session_id=session_id,
                directory=Path(self.settings.output_dir) / session_id,
            )
            logger.info("Session created: %s", session_id)

            self.state = SessionState.segmenting
            self.watcher = await self.segmenter.start(self.session, input_file, on_batch=self._on_batch)

            self.state = SessionState.uploading
            await self.watcher.wait()
            self.state = SessionState.completed
            logger.info("Session %s completed", session_id)
        except Exception as exc:
            self.state = SessionState.failed
            self.detail = str(exc)
            logger.exception("Session failed")

    async def _on_batch(self, segment_count: int) -> None:
        await self.updater.update(self.session, segment_count)

    def status(self) -> SessionStatus:
        return SessionStatus(
            session_id=self.session.session_id if self.session else None,
            state=self.state,
            uploaded_segments=self.watcher.uploaded_count if self.watcher else 0,
            transcript_cycles=self.updater.cycles,
            detail=self.detail,
        )
