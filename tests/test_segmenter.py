import asyncio
import os

import pytest

from common.config import IngestSettings
from ingest_service.models import IngestSession
from ingest_service.segmenter import EncoderError, Segmenter, build_ffmpeg_command, run_encoder


class TestFfmpegCommand:
    def test_hls_options(self, tmp_path):
        cmd = build_ffmpeg_command(IngestSettings(), "/media/video.mp4", tmp_path)
        assert cmd[0] == "ffmpeg"
        assert cmd[cmd.index("-i") + 1] == "/media/video.mp4"
        assert cmd[cmd.index("-codec:v") + 1] == "libx264"
        assert cmd[cmd.index("-codec:a") + 1] == "aac"
        assert cmd[cmd.index("-b:v") + 1] == "800k"
        assert cmd[cmd.index("-hls_time") + 1] == "5"
        assert cmd[cmd.index("-hls_list_size") + 1] == "0"
        assert cmd[cmd.index("-hls_segment_filename") + 1] == str(tmp_path / "segment_%03d.ts")
        assert cmd[-1] == str(tmp_path / "stream.m3u8")

    def test_uses_configured_binary(self, tmp_path):
        settings = IngestSettings(ffmpeg_path="/opt/ffmpeg/bin/ffmpeg", hls_time_s=2)
        cmd = build_ffmpeg_command(settings, "in.mp4", tmp_path)
        assert cmd[0] == "/opt/ffmpeg/bin/ffmpeg"
        assert cmd[cmd.index("-hls_time") + 1] == "2"


class TestRunEncoder:
    @pytest.mark.asyncio
    async def test_failure_raises_with_stderr(self, tmp_path, fake_ffmpeg):
        settings = IngestSettings(ffmpeg_path=fake_ffmpeg(code=1))
        with pytest.raises(EncoderError, match="Conversion failed") as exc_info:
            await run_encoder(settings, "in.mp4", tmp_path)
        assert exc_info.value.returncode == 1

    @pytest.mark.asyncio
    async def test_missing_binary_raises(self, tmp_path):
        settings = IngestSettings(ffmpeg_path=str(tmp_path / "no-such-ffmpeg"))
        with pytest.raises(EncoderError, match="Cannot launch"):
            await run_encoder(settings, "in.mp4", tmp_path)


class TestSegmenter:
    @pytest.fixture
    def session(self, tmp_path):
        return IngestSession(session_id="1700000000000", directory=tmp_path / "output" / "1700000000000")

    @pytest.mark.asyncio
    async def test_uploads_manifest_then_watches(self, session, store, fake_ffmpeg):
        settings = IngestSettings(ffmpeg_path=fake_ffmpeg(), poll_interval_s=0.01)
        batches = []

        async def on_batch(count):
            batches.append(count)

        watcher = await Segmenter(settings, store).start(session, "in.mp4", on_batch=on_batch)
        assert session.directory.is_dir()
        assert store.puts[0] == ("1700000000000/stream.m3u8", b"#EXTM3U\n", "application/vnd.apple.mpegurl")

        await asyncio.wait_for(watcher.wait(), timeout=2)
        assert store.keys[1:] == [f"1700000000000/highres.{i:06d}.ts" for i in range(3)]
        assert batches == [3]

    @pytest.mark.asyncio
    async def test_encoder_failure_propagates(self, session, store, fake_ffmpeg):
        settings = IngestSettings(ffmpeg_path=fake_ffmpeg(code=1))
        with pytest.raises(EncoderError):
            await Segmenter(settings, store).start(session, "in.mp4")
        assert store.puts == []

    @pytest.mark.asyncio
    async def test_manifest_failure_still_starts_watcher(self, session, store, fake_ffmpeg):
        settings = IngestSettings(ffmpeg_path=fake_ffmpeg(), poll_interval_s=0.01)
        store.fail_once.add("1700000000000/stream.m3u8")

        watcher = await Segmenter(settings, store).start(session, "in.mp4")
        await asyncio.wait_for(watcher.wait(), timeout=2)
        assert len(store.puts) == 3


class TestEncoderCancellation:
    @pytest.mark.asyncio
    async def test_cancel_kills_encoder(self, tmp_path):
        pid_file = tmp_path / "encoder.pid"
        script = tmp_path / "slow-ffmpeg"
        script.write_text(f'#!/bin/sh\necho $$ > "{pid_file}"\nexec sleep 30\n')
        script.chmod(0o755)
        settings = IngestSettings(ffmpeg_path=str(script))

        task = asyncio.create_task(run_encoder(settings, "in.mp4", tmp_path))
        for _ in range(200):
            if pid_file.exists() and pid_file.read_text().strip():
                break
            await asyncio.sleep(0.01)
        pid = int(pid_file.read_text())

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        with pytest.raises(ProcessLookupError):
            os.kill(pid, 0)
