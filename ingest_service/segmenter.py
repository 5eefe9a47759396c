from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

from common.config import IngestSettings
from ingest_service.blob_store import BlobStore, BlobStoreError, upload_file
from ingest_service.models import IngestSession
from ingest_service.watcher import BatchHook, SegmentWatcher

logger = logging.getLogger(__name__)


class EncoderError(RuntimeError):
    def __init__(self, message: str, returncode: int | None = None) -> None:
        super().__init__(message)
        self.returncode = returncode


def build_ffmpeg_command(settings: IngestSettings, input_file: str | Path, output_dir: str | Path) -> list[str]:
    """ffmpeg invocation writing an HLS stream with unbounded segment retention."""
    output_dir = Path(output_dir)
    segment_pattern = output_dir / f"{settings.segment_prefix}%03d{settings.segment_extension}"
    return [
        settings.ffmpeg_path,
        "-hide_banner",
        "-loglevel", "error",
        "-i", str(input_file),
        "-codec:v", settings.video_codec,
        "-codec:a", settings.audio_codec,
        "-preset", settings.preset,
        "-b:v", settings.video_bitrate,
        "-hls_time", str(settings.hls_time_s),
        "-hls_list_size", str(settings.hls_list_size),
        "-hls_segment_filename", str(segment_pattern),
        str(output_dir / settings.manifest_name),
    ]


async def run_encoder(settings: IngestSettings, input_file: str | Path, output_dir: str | Path) -> None:
    cmd = build_ffmpeg_command(settings, input_file, output_dir)
    logger.info("Starting encoder: %s", " ".join(cmd))
    try:
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as exc:
        raise EncoderError(f"Cannot launch {settings.ffmpeg_path}: {exc}") from exc

    try:
        _, stderr = await proc.communicate()
    except asyncio.CancelledError:
        if proc.returncode is None:
            proc.kill()
            await proc.wait()
        logger.warning("Encoder cancelled, killed pid %d", proc.pid)
        raise
    if proc.returncode != 0:
        tail = stderr.decode("utf-8", errors="replace").strip()[-500:]
        raise EncoderError(f"ffmpeg exited with code {proc.returncode}: {tail}", proc.returncode)
    logger.info("FFmpeg segmentation complete")


class Segmenter:
    """Runs the encoder for a session, then hands its output to a SegmentWatcher."""

    def __init__(self, settings: IngestSettings, store: BlobStore) -> None:
        self.settings = settings
        self.store = store

    async def start(
        self,
        session: IngestSession,
        input_file: str | Path,
        on_batch: Optional[BatchHook] = None,
    ) -> SegmentWatcher:
        session.directory.mkdir(parents=True, exist_ok=True)
        encoder_finished = asyncio.Event()

        await run_encoder(self.settings, input_file, session.directory)
        encoder_finished.set()

        manifest = session.local_path(self.settings.manifest_name)
        try:
            await upload_file(self.store, manifest, session.remote_key(self.settings.manifest_name))
        except BlobStoreError as exc:
            logger.error("Manifest upload failed for %s: %s", session.session_id, exc)

        watcher = SegmentWatcher(
            session,
            self.store,
            on_batch=on_batch,
            batch_size=self.settings.transcript_batch_size,
            poll_interval=self.settings.poll_interval_s,
            encoder_finished=encoder_finished,
            segment_prefix=self.settings.segment_prefix,
            segment_extension=self.settings.segment_extension,
            remote_label=self.settings.remote_segment_label,
        )
        watcher.start()
        return watcher
