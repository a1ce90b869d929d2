"""
Video processing infrastructure.

Handles server-side video processing using FFmpeg:
- Stream metadata inspection (aspect ratio)
- Fast-start remuxing without re-encoding
"""

from .processor import (
    VideoProcessor,
    FFmpegVideoProcessor,
    MockVideoProcessor,
    create_video_processor,
)

__all__ = [
    "VideoProcessor",
    "FFmpegVideoProcessor",
    "MockVideoProcessor",
    "create_video_processor",
]
