"""
Media processing infrastructure.

Wraps ffprobe and ffmpeg for the upload pipeline:
- Stream geometry inspection
- Fast-start remuxing (moov atom moved to the front, no re-encode)
"""

from .tool import (
    FFmpegMediaTool,
    MediaTool,
    MockMediaTool,
    create_media_tool,
)

__all__ = [
    "FFmpegMediaTool",
    "MediaTool",
    "MockMediaTool",
    "create_media_tool",
]
