"""Rolling transcript document kept on local disk and mirrored to the blob store.

Every update reloads the whole document, appends one batch of words and
rewrites it. Unreadable or malformed documents are replaced with the empty
shape rather than treated as errors.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path

from pydantic import ValidationError

from common.schemas import TranscriptDocument, TranscriptWord
from ingest_service.blob_store import BlobStore, BlobStoreError, content_type_for
from ingest_service.models import IngestSession

logger = logging.getLogger(__name__)

WORD_DURATION = 150
SPEAKER_GAP = 100


def empty_document(title: str = "Transcript") -> TranscriptDocument:
    return TranscriptDocument(title=title)


def build_batch(segment_count: int) -> list[TranscriptWord]:
    """Words attributed to the upload counter value ``segment_count``."""
    groups = [
        ("speaker1", ["word", "from", "segment", str(segment_count)]),
        ("speaker2", ["example", str(segment_count)]),
    ]
    words: list[TranscriptWord] = []
    current = segment_count * 1000
    for i, (speaker, tokens) in enumerate(groups):
        if i > 0:
            current += SPEAKER_GAP
        for token in tokens:
            words.append(TranscriptWord(value=token, speaker=speaker, time=current, duration=WORD_DURATION))
            current += WORD_DURATION
    return words


def load_document(path: str | Path, title: str = "Transcript") -> TranscriptDocument:
    path = Path(path)
    if not path.exists():
        return empty_document(title)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        logger.warning("Cannot read transcript %s, starting empty: %s", path, exc)
        return empty_document(title)

    if not isinstance(data, dict):
        logger.warning("Transcript %s is not an object, starting empty", path)
        return empty_document(title)
    if not isinstance(data.get("words"), list):
        data["words"] = []

    try:
        return TranscriptDocument.model_validate(data)
    except ValidationError as exc:
        logger.warning("Transcript %s has an invalid shape, starting empty: %s", path, exc)
        return empty_document(title)


def write_document(path: str | Path, document: TranscriptDocument) -> bytes:
    """Replace the file at ``path`` with the full document; returns the bytes written."""
    path = Path(path)
    body = document.to_json().encode("utf-8")
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(path.name + ".tmp")
    tmp.write_bytes(body)
    os.replace(tmp, path)
    return body


class TranscriptUpdater:
    def __init__(self, path: str | Path, store: BlobStore, title: str = "Transcript") -> None:
        self.path = Path(path)
        self.store = store
        self.title = title
        self.cycles = 0

    def reset(self) -> None:
        """Start over from the empty document, discarding any previous file."""
        self.path.unlink(missing_ok=True)
        write_document(self.path, empty_document(self.title))
        self.cycles = 0
        logger.info("Created fresh transcript %s", self.path)

    async def update(self, session: IngestSession, segment_count: int) -> TranscriptDocument:
        document = await asyncio.to_thread(load_document, self.path, self.title)
        document.words.extend(build_batch(segment_count))
        document.update_time = datetime.now(timezone.utc).isoformat()

        try:
            body = await asyncio.to_thread(write_document, self.path, document)
        except OSError:
            logger.exception("Failed to write transcript %s", self.path)
            return document
        self.cycles += 1

        key = session.remote_key(self.path.name)
        try:
            await self.store.put(key, body, content_type_for(self.path))
        except BlobStoreError as exc:
            logger.error("Failed to upload transcript %s: %s", key, exc)
            return document

        logger.info("Updated transcript for segment %d, total words: %d",
                    segment_count, len(document.words))
        return document
