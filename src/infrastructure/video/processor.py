"""
Video processing using FFmpeg/FFprobe.

Two operations, both on local file paths:
1. Inspect stream metadata (ffprobe JSON) to find the display aspect ratio
2. Remux for fast start (ffmpeg stream copy, moov atom moved to the front)

Neither re-encodes anything. The remux only rewrites the container so
browsers can start playback before the whole file has downloaded.

Why shell out instead of a binding library:
- ffprobe/ffmpeg are the reference tools, their JSON output is stable
- Available everywhere (including Docker)
- Keeps the Python side to argument building and output parsing
"""

import asyncio
import json
import logging
import os
import shutil
import subprocess
from typing import Protocol

from ...core.media.errors import ProbeError, RemuxError
from ...core.media.models import StreamInfo, StreamMetadata

logger = logging.getLogger(__name__)

# Appended to the input path to name the remux output.
PROCESSED_SUFFIX = ".processing"


class VideoProcessor(Protocol):
    """Protocol for video processing operations."""

    async def inspect(self, path: str) -> StreamMetadata:
        """Read stream metadata from a local file."""
        ...

    async def remux(self, path: str) -> str:
        """Write a fast-start copy next to the input and return its path."""
        ...


def processed_path_for(path: str) -> str:
    return f"{path}{PROCESSED_SUFFIX}"


def parse_ffprobe_output(output: str) -> StreamMetadata:
    """
    Parse `ffprobe -print_format json -show_streams` output.

    Raises ValueError if the output isn't a JSON object with a list of
    stream objects.
    """
    payload = json.loads(output)
    if not isinstance(payload, dict):
        raise ValueError("ffprobe output is not a JSON object")

    streams = payload.get("streams")
    if not isinstance(streams, list):
        raise ValueError("ffprobe output has no streams list")

    parsed = []
    for stream in streams:
        if not isinstance(stream, dict):
            raise ValueError("ffprobe stream entry is not an object")
        ratio = stream.get("display_aspect_ratio")
        parsed.append(StreamInfo(
            codec_type=str(stream.get("codec_type", "")),
            display_aspect_ratio=str(ratio) if ratio is not None else None,
        ))

    return StreamMetadata(streams=tuple(parsed))


class FFmpegVideoProcessor:
    """
    Video processor using FFmpeg/FFprobe binaries.

    Commands run in a worker thread via asyncio.to_thread so a long remux
    doesn't block the event loop. No timeout is applied to either tool.
    """

    def __init__(self, ffmpeg_path: str = "ffmpeg", ffprobe_path: str = "ffprobe"):
        """
        Initialize processor with FFmpeg paths.

        Args:
            ffmpeg_path: Path to ffmpeg binary (default assumes it's in PATH)
            ffprobe_path: Path to ffprobe binary
        """
        self._ffmpeg = ffmpeg_path
        self._ffprobe = ffprobe_path

        # verify ffmpeg is available
        try:
            result = subprocess.run(
                [self._ffmpeg, "-version"],
                capture_output=True,
                text=True,
                timeout=5
            )
            if result.returncode != 0:
                raise RuntimeError("FFmpeg not working properly")
            logger.info("FFmpeg video processor initialized")
        except FileNotFoundError:
            raise RuntimeError(
                "FFmpeg not found. Install with: apt-get install ffmpeg"
            )

    async def inspect(self, path: str) -> StreamMetadata:
        """
        Run ffprobe and parse its stream list.

        Read-only: nothing is written next to the input.
        """
        cmd = [
            self._ffprobe,
            "-v", "error",
            "-print_format", "json",
            "-show_streams",
            path,
        ]

        try:
            result = await asyncio.to_thread(
                subprocess.run,
                cmd,
                capture_output=True,
                text=True,
            )
        except OSError as e:
            # binary missing, not executable, ...
            raise ProbeError(f"Could not start ffprobe: {e}") from e

        if result.returncode != 0:
            raise ProbeError(
                f"FFprobe exited with {result.returncode}: {result.stderr.strip()}"
            )

        try:
            metadata = parse_ffprobe_output(result.stdout)
        except ValueError as e:
            raise ProbeError(f"Unexpected ffprobe output: {e}") from e

        logger.debug(
            "Probed video",
            extra={"path": path, "stream_count": len(metadata.streams)}
        )

        return metadata

    async def remux(self, path: str) -> str:
        """
        Copy streams into a new MP4 with the moov atom up front.

        -c copy keeps the codecs untouched, -movflags faststart moves the
        index, -f mp4 pins the output container regardless of extension.
        """
        output_path = processed_path_for(path)
        cmd = [
            self._ffmpeg,
            "-y",
            "-i", path,
            "-c", "copy",
            "-movflags", "faststart",
            "-f", "mp4",
            output_path,
        ]

        try:
            result = await asyncio.to_thread(
                subprocess.run,
                cmd,
                capture_output=True,
                text=True,
            )
        except OSError as e:
            raise RemuxError(f"Could not start ffmpeg: {e}") from e

        try:
            if result.returncode != 0:
                raise RemuxError(
                    f"FFmpeg exited with {result.returncode}: {result.stderr.strip()}"
                )

            # ffmpeg can exit 0 and still leave nothing usable behind
            if not os.path.exists(output_path) or os.path.getsize(output_path) == 0:
                raise RemuxError(f"FFmpeg produced no output at {output_path}")
        except RemuxError:
            _discard(output_path)
            raise

        logger.info(
            "Remuxed video for fast start",
            extra={
                "input": path,
                "output": output_path,
                "size_bytes": os.path.getsize(output_path),
            }
        )

        return output_path


def _discard(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(
            "Failed to remove partial remux output",
            extra={"path": path, "error": str(e)}
        )


class MockVideoProcessor:
    """
    Mock video processor for local development without FFmpeg.

    Reports a single video stream with a fixed aspect ratio and "remuxes"
    by copying the file, so the full upload flow runs end to end.
    """

    def __init__(self, display_aspect_ratio: str = "16:9"):
        self._display_aspect_ratio = display_aspect_ratio
        logger.info("Initialized mock video processor")

    async def inspect(self, path: str) -> StreamMetadata:
        """Return one video stream with the configured ratio."""
        if not os.path.exists(path):
            raise ProbeError(f"No such file: {path}")
        return StreamMetadata(streams=(
            StreamInfo(codec_type="video", display_aspect_ratio=self._display_aspect_ratio),
            StreamInfo(codec_type="audio"),
        ))

    async def remux(self, path: str) -> str:
        """Copy the input to the processed path."""
        output_path = processed_path_for(path)
        try:
            await asyncio.to_thread(shutil.copyfile, path, output_path)
        except OSError as e:
            raise RemuxError(f"Mock remux failed: {e}") from e
        return output_path


def create_video_processor(
    mock_mode: bool = False,
    ffmpeg_path: str = "ffmpeg",
    ffprobe_path: str = "ffprobe",
) -> VideoProcessor:
    """
    Factory function for video processor.

    Args:
        mock_mode: If True, return mock processor (no FFmpeg required)
        ffmpeg_path: ffmpeg binary for the real processor
        ffprobe_path: ffprobe binary for the real processor

    Returns:
        VideoProcessor implementation
    """
    if mock_mode:
        return MockVideoProcessor()

    return FFmpegVideoProcessor(ffmpeg_path=ffmpeg_path, ffprobe_path=ffprobe_path)
