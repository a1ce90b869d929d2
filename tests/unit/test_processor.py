"""
Unit tests for the ffmpeg/ffprobe processor.

subprocess.run is replaced with a fake, so these run without the binaries
installed. The fake records the command lines it was given.
"""

import json
import subprocess

import pytest

from src.core.media.errors import ProbeError, RemuxError
from src.core.media.models import Orientation
from src.infrastructure.video.processor import (
    FFmpegVideoProcessor,
    MockVideoProcessor,
    create_video_processor,
    parse_ffprobe_output,
    processed_path_for,
)


FFPROBE_OUTPUT = json.dumps({
    "streams": [
        {"index": 0, "codec_type": "video", "codec_name": "h264",
         "width": 1080, "height": 1920, "display_aspect_ratio": "9:16"},
        {"index": 1, "codec_type": "audio", "codec_name": "aac"},
    ]
})


class FakeRun:
    """Stands in for subprocess.run."""

    def __init__(self, probe=None, remux=None):
        self.commands: list[list[str]] = []
        self._probe = probe
        self._remux = remux

    def __call__(self, cmd, **kwargs):
        self.commands.append(cmd)
        if "-version" in cmd:
            return subprocess.CompletedProcess(cmd, 0, "ffmpeg version 6.1", "")
        if cmd[0] == "ffprobe":
            return self._probe(cmd) if self._probe else subprocess.CompletedProcess(
                cmd, 0, FFPROBE_OUTPUT, ""
            )
        return self._remux(cmd) if self._remux else _write_output(cmd, b"remuxed")


def _write_output(cmd, data: bytes, returncode: int = 0, stderr: str = ""):
    with open(cmd[-1], "wb") as f:
        f.write(data)
    return subprocess.CompletedProcess(cmd, returncode, "", stderr)


@pytest.fixture
def staged(tmp_path):
    path = tmp_path / "upload-abc.mp4"
    path.write_bytes(b"\x00\x00\x00\x18ftypmp42")
    return str(path)


def make_processor(monkeypatch, fake: FakeRun) -> FFmpegVideoProcessor:
    monkeypatch.setattr(subprocess, "run", fake)
    return FFmpegVideoProcessor()


# ---------------------------------------------------------------------------
# Output parsing
# ---------------------------------------------------------------------------

class TestParseFFprobeOutput:
    """ffprobe JSON to StreamMetadata."""

    def test_parses_streams_in_order(self):
        metadata = parse_ffprobe_output(FFPROBE_OUTPUT)

        assert [s.codec_type for s in metadata.streams] == ["video", "audio"]
        assert metadata.streams[0].display_aspect_ratio == "9:16"
        assert metadata.streams[1].display_aspect_ratio is None
        assert metadata.orientation is Orientation.PORTRAIT

    def test_empty_stream_list(self):
        metadata = parse_ffprobe_output('{"streams": []}')
        assert metadata.orientation is Orientation.OTHER

    @pytest.mark.parametrize("output", [
        "",
        "not json",
        "[]",
        '{"format": {}}',
        '{"streams": {}}',
        '{"streams": ["video"]}',
    ])
    def test_malformed_output(self, output):
        with pytest.raises(ValueError):
            parse_ffprobe_output(output)


# ---------------------------------------------------------------------------
# FFmpegVideoProcessor
# ---------------------------------------------------------------------------

class TestFFmpegVideoProcessor:
    """Command lines and failure handling."""

    def test_missing_ffmpeg_fails_at_construction(self, monkeypatch):
        def not_found(cmd, **kwargs):
            raise FileNotFoundError(cmd[0])

        monkeypatch.setattr(subprocess, "run", not_found)

        with pytest.raises(RuntimeError, match="FFmpeg not found"):
            FFmpegVideoProcessor()

    @pytest.mark.asyncio
    async def test_inspect_runs_ffprobe_read_only(self, monkeypatch, staged, tmp_path):
        fake = FakeRun()
        processor = make_processor(monkeypatch, fake)

        metadata = await processor.inspect(staged)

        assert metadata.orientation is Orientation.PORTRAIT
        assert fake.commands[-1] == [
            "ffprobe", "-v", "error", "-print_format", "json", "-show_streams", staged,
        ]
        assert sorted(p.name for p in tmp_path.iterdir()) == ["upload-abc.mp4"]

    @pytest.mark.asyncio
    async def test_inspect_nonzero_exit(self, monkeypatch, staged):
        fake = FakeRun(probe=lambda cmd: subprocess.CompletedProcess(
            cmd, 1, "", "moov atom not found"
        ))
        processor = make_processor(monkeypatch, fake)

        with pytest.raises(ProbeError, match="moov atom not found"):
            await processor.inspect(staged)

    @pytest.mark.asyncio
    async def test_inspect_unparsable_output(self, monkeypatch, staged):
        fake = FakeRun(probe=lambda cmd: subprocess.CompletedProcess(cmd, 0, "garbage", ""))
        processor = make_processor(monkeypatch, fake)

        with pytest.raises(ProbeError, match="Unexpected ffprobe output"):
            await processor.inspect(staged)

    @pytest.mark.asyncio
    async def test_inspect_missing_binary(self, monkeypatch, staged):
        def probe_missing(cmd):
            raise FileNotFoundError("ffprobe")

        processor = make_processor(monkeypatch, FakeRun(probe=probe_missing))

        with pytest.raises(ProbeError, match="Could not start ffprobe"):
            await processor.inspect(staged)

    @pytest.mark.asyncio
    async def test_remux_command_and_output(self, monkeypatch, staged):
        fake = FakeRun()
        processor = make_processor(monkeypatch, fake)

        output = await processor.remux(staged)

        assert output == processed_path_for(staged)
        assert output == staged + ".processing"
        assert fake.commands[-1] == [
            "ffmpeg", "-y", "-i", staged,
            "-c", "copy", "-movflags", "faststart", "-f", "mp4",
            output,
        ]
        with open(output, "rb") as f:
            assert f.read() == b"remuxed"

    @pytest.mark.asyncio
    async def test_remux_empty_output_is_error(self, monkeypatch, staged, tmp_path):
        """A zero exit with an empty file is still a failure."""
        fake = FakeRun(remux=lambda cmd: _write_output(cmd, b""))
        processor = make_processor(monkeypatch, fake)

        with pytest.raises(RemuxError, match="no output"):
            await processor.remux(staged)

        assert sorted(p.name for p in tmp_path.iterdir()) == ["upload-abc.mp4"]

    @pytest.mark.asyncio
    async def test_remux_missing_output_is_error(self, monkeypatch, staged):
        fake = FakeRun(remux=lambda cmd: subprocess.CompletedProcess(cmd, 0, "", ""))
        processor = make_processor(monkeypatch, fake)

        with pytest.raises(RemuxError):
            await processor.remux(staged)

    @pytest.mark.asyncio
    async def test_remux_nonzero_exit_discards_partial_output(self, monkeypatch, staged, tmp_path):
        fake = FakeRun(remux=lambda cmd: _write_output(
            cmd, b"partial", returncode=1, stderr="Invalid data found when processing input"
        ))
        processor = make_processor(monkeypatch, fake)

        with pytest.raises(RemuxError, match="Invalid data"):
            await processor.remux(staged)

        assert sorted(p.name for p in tmp_path.iterdir()) == ["upload-abc.mp4"]


# ---------------------------------------------------------------------------
# Mock processor and factory
# ---------------------------------------------------------------------------

class TestMockVideoProcessor:
    """The no-ffmpeg processor used in mock mode."""

    @pytest.mark.asyncio
    async def test_inspect_reports_configured_ratio(self, staged):
        processor = MockVideoProcessor(display_aspect_ratio="9:16")

        metadata = await processor.inspect(staged)

        assert metadata.orientation is Orientation.PORTRAIT

    @pytest.mark.asyncio
    async def test_inspect_missing_file(self, tmp_path):
        with pytest.raises(ProbeError):
            await MockVideoProcessor().inspect(str(tmp_path / "missing.mp4"))

    @pytest.mark.asyncio
    async def test_remux_copies_file(self, staged):
        output = await MockVideoProcessor().remux(staged)

        with open(output, "rb") as f, open(staged, "rb") as original:
            assert f.read() == original.read()

    def test_factory_mock_mode(self):
        assert isinstance(create_video_processor(mock_mode=True), MockVideoProcessor)
