import pytest

from ingest_service.blob_store import BlobStoreError


class RecordingStore:
    """In-memory blob store that records every put in call order."""

    def __init__(self) -> None:
        self.puts: list[tuple[str, bytes, str]] = []
        self.fail_once: set[str] = set()

    async def put(self, key: str, body: bytes, content_type: str) -> None:
        if key in self.fail_once:
            self.fail_once.discard(key)
            raise BlobStoreError(f"simulated failure for {key}")
        self.puts.append((key, body, content_type))

    @property
    def keys(self) -> list[str]:
        return [key for key, _, _ in self.puts]


@pytest.fixture
def store():
    return RecordingStore()


FAKE_FFMPEG = """#!/bin/sh
for last; do :; done
dir=$(dirname "$last")
for i in {indices}; do
    printf 'segment %s' "$i" > "$dir/segment_$i.ts"
done
printf '#EXTM3U\\n' > "$last"
if [ {code} -ne 0 ]; then echo "Conversion failed!" >&2; fi
exit {code}
"""


@pytest.fixture
def fake_ffmpeg(tmp_path):
    """Factory for a stand-in encoder that writes segments and a manifest."""

    def make(indices=("002", "000", "001"), code=0, name="ffmpeg"):
        script = tmp_path / name
        script.write_text(FAKE_FFMPEG.format(indices=" ".join(indices), code=code))
        script.chmod(0o755)
        return str(script)

    return make
