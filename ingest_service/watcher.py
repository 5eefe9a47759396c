"""Polling uploader for encoder segment files.

The watcher lists the session directory on a fixed period and uploads every
segment it has not uploaded yet, one at a time in ascending index order. A
tick that fires while the previous scan is still running is dropped.
"""

from __future__ import annotations

import asyncio
import logging
import os
import re
from typing import Awaitable, Callable, Optional

from ingest_service.blob_store import BlobStore, BlobStoreError, upload_file
from ingest_service.models import IngestSession, SegmentFile
from ingest_service.tracker import UploadTracker

logger = logging.getLogger(__name__)

BatchHook = Callable[[int], Awaitable[object]]


def parse_segment_name(name: str, prefix: str = "segment_", extension: str = ".ts") -> SegmentFile | None:
    match = re.fullmatch(rf"{re.escape(prefix)}(\d+){re.escape(extension)}", name)
    if match is None:
        return None
    return SegmentFile(name=name, index=int(match.group(1)))


def remote_segment_name(index: int, label: str = "highres", extension: str = ".ts") -> str:
    return f"{label}.{index:06d}{extension}"


class SegmentWatcher:
    def __init__(
        self,
        session: IngestSession,
        store: BlobStore,
        *,
        tracker: UploadTracker | None = None,
        on_batch: Optional[BatchHook] = None,
        batch_size: int = 3,
        poll_interval: float = 5.0,
        encoder_finished: asyncio.Event | None = None,
        segment_prefix: str = "segment_",
        segment_extension: str = ".ts",
        remote_label: str = "highres",
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self.session = session
        self.store = store
        self.tracker = tracker or UploadTracker()
        self.on_batch = on_batch
        self.batch_size = batch_size
        self.poll_interval = poll_interval
        self.encoder_finished = encoder_finished
        self.segment_prefix = segment_prefix
        self.segment_extension = segment_extension
        self.remote_label = remote_label

        self._uploaded_count = 0
        self._cycles = 0
        self._scanning = False
        self._timer: asyncio.Task | None = None
        self._scan_tasks: set[asyncio.Task] = set()
        self._stopped = asyncio.Event()

    @property
    def uploaded_count(self) -> int:
        return self._uploaded_count

    @property
    def cycles(self) -> int:
        return self._cycles

    @property
    def running(self) -> bool:
        return self._timer is not None and not self._stopped.is_set()

    @property
    def finished(self) -> bool:
        return self._stopped.is_set()

    def start(self) -> None:
        if self._timer is not None:
            return
        logger.info("Watching %s every %.1fs", self.session.directory, self.poll_interval)
        self._timer = asyncio.create_task(self._tick())

    def stop(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
        self._stopped.set()

    async def wait(self) -> None:
        await self._stopped.wait()

    async def _tick(self) -> None:
        while not self._stopped.is_set():
            await asyncio.sleep(self.poll_interval)
            if self._scanning:
                logger.debug("Previous scan still running, tick dropped")
                continue
            task = asyncio.create_task(self.scan())
            self._scan_tasks.add(task)
            task.add_done_callback(self._scan_tasks.discard)

    async def scan(self) -> None:
        """Run one scan cycle unless another one is in flight."""
        if self._scanning:
            logger.debug("Scan already in progress for %s", self.session.session_id)
            return
        self._scanning = True
        try:
            await self._scan_cycle()
        except Exception:
            logger.exception("Error polling %s", self.session.directory)
        finally:
            self._cycles += 1
            self._scanning = False

    def _list_segments(self, names: list[str]) -> list[SegmentFile]:
        segments = [
            seg for seg in (
                parse_segment_name(name, self.segment_prefix, self.segment_extension)
                for name in names
            )
            if seg is not None
        ]
        # Listing order is filesystem dependent; the index is authoritative.
        return sorted(segments, key=lambda seg: seg.index)

    async def _scan_cycle(self) -> None:
        names = await asyncio.to_thread(os.listdir, self.session.directory)
        segments = self._list_segments(names)

        for seg in segments:
            path = self.session.local_path(seg.name)
            if self.tracker.has(path):
                continue

            key = self.session.remote_key(
                remote_segment_name(seg.index, self.remote_label, self.segment_extension)
            )
            try:
                await upload_file(self.store, path, key)
            except BlobStoreError as exc:
                # Later segments wait so uploads stay in index order.
                logger.error("Upload of %s failed, retrying next cycle: %s", seg.name, exc)
                return

            self.tracker.mark_uploaded(path)
            self._uploaded_count += 1

            if self._uploaded_count % self.batch_size == 0 and self.on_batch is not None:
                try:
                    await self.on_batch(self._uploaded_count)
                except Exception:
                    logger.exception("Batch hook failed at segment count %d", self._uploaded_count)

        pending = [seg for seg in segments if not self.tracker.has(self.session.local_path(seg.name))]
        if segments and not pending and self._encoder_done():
            logger.info("All segments processed for %s (%d uploaded)",
                        self.session.session_id, self._uploaded_count)
            self.stop()

    def _encoder_done(self) -> bool:
        return self.encoder_finished is None or self.encoder_finished.is_set()
