from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


# --- Rolling transcript document ---

class RealtimeStatus(str, Enum):
    active = "ACTIVE"
    completed = "COMPLETED"


class TranscriptWord(BaseModel):
    model_config = ConfigDict(extra="allow")

    value: str
    speaker: str
    time: int
    duration: int


class Speaker(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str


class Realtime(BaseModel):
    model_config = ConfigDict(extra="allow")

    status: RealtimeStatus = RealtimeStatus.active


def _default_speakers() -> dict[str, Speaker]:
    return {
        "speaker1": Speaker(name="Speaker 1"),
        "speaker2": Speaker(name="Speaker 2"),
    }


class TranscriptDocument(BaseModel):
    # Unknown top-level keys written by other tools are carried through.
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    words: list[TranscriptWord] = []
    speakers: dict[str, Speaker] = Field(default_factory=_default_speakers)
    paragraphs: dict = {}
    realtime: Realtime = Realtime()
    title: str = "Transcript"
    update_time: Optional[str] = Field(default=None, alias="updateTime")

    def to_json(self) -> str:
        exclude = {"update_time"} if self.update_time is None else None
        return self.model_dump_json(by_alias=True, exclude=exclude, indent=2)


# --- Session status (served by the status endpoint) ---

class SessionState(str, Enum):
    idle = "idle"
    segmenting = "segmenting"
    uploading = "uploading"
    completed = "completed"
    failed = "failed"


class SessionStatus(BaseModel):
    session_id: Optional[str] = None
    state: SessionState = SessionState.idle
    uploaded_segments: int = 0
    transcript_cycles: int = 0
    detail: Optional[str] = None
