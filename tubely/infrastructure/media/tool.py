"""
Media inspection and fast-start remuxing using FFmpeg.

The upload pipeline needs exactly two things from a media tool:
1. Inspect a file for the first stream's width and height (ffprobe)
2. Rewrite an MP4 so its moov atom sits before the media data (ffmpeg)

Both are run as blocking child processes on a worker thread, with a
bounded timeout. A hung ffmpeg would otherwise pin a worker forever.

The pipeline depends on the MediaTool protocol, not on subprocess, so
tests and local development can use MockMediaTool instead.
"""

import asyncio
import json
import logging
import os
import shutil
import subprocess

from ...core.media.errors import DataError, ExternalToolError
from ...core.media.models import VideoGeometry
from ...core.media.uploads import MediaTool

logger = logging.getLogger(__name__)

FAST_START_SUFFIX = ".processing"


def fast_start_output_path(path: str) -> str:
    """Where the remuxed copy of path is written."""
    return f"{path}{FAST_START_SUFFIX}"


def parse_probe_output(stdout: str) -> VideoGeometry:
    """
    Parse ffprobe's JSON stream listing into the first stream's geometry.

    Raises ExternalToolError if the output is not the JSON we asked for,
    DataError if the file has no streams or the first one has no size.
    """
    try:
        info = json.loads(stdout)
    except (json.JSONDecodeError, TypeError) as e:
        raise ExternalToolError(f"Unparseable ffprobe output: {e}") from e

    if not isinstance(info, dict):
        raise ExternalToolError("Unexpected ffprobe output: not a JSON object")

    streams = info.get("streams") or []
    if not streams:
        raise DataError("No streams found in media file")

    first = streams[0]
    try:
        return VideoGeometry(
            width=int(first.get("width", 0)),
            height=int(first.get("height", 0)),
        )
    except (AttributeError, TypeError, ValueError) as e:
        raise DataError(f"First stream has no usable dimensions: {e}") from e


class FFmpegMediaTool(MediaTool):
    """
    Media tool backed by the ffprobe and ffmpeg binaries.

    Works on file paths because that is what FFmpeg handles best; the
    pipeline has already buffered the upload to disk.
    """

    def __init__(
        self,
        ffmpeg_path: str = "ffmpeg",
        ffprobe_path: str = "ffprobe",
        timeout_seconds: float = 300.0,
    ) -> None:
        """
        Args:
            ffmpeg_path: Path to ffmpeg binary (default assumes it's in PATH)
            ffprobe_path: Path to ffprobe binary
            timeout_seconds: Upper bound for any single invocation
        """
        self._ffmpeg = ffmpeg_path
        self._ffprobe = ffprobe_path
        self._timeout = timeout_seconds

    async def _run(self, cmd: list[str]) -> subprocess.CompletedProcess:
        try:
            return await asyncio.to_thread(
                subprocess.run,
                cmd,
                capture_output=True,
                text=True,
                timeout=self._timeout,
            )
        except FileNotFoundError as e:
            raise ExternalToolError(f"{cmd[0]} not found. Install with: apt-get install ffmpeg") from e
        except subprocess.TimeoutExpired as e:
            raise ExternalToolError(f"{cmd[0]} timed out after {self._timeout}s") from e

    async def inspect(self, path: str) -> VideoGeometry:
        """
        Extract the first stream's width and height using ffprobe.

        Only the first stream is read, as the upload format is defined by
        it. For the MP4s this service accepts that is the video track.
        """
        cmd = [
            self._ffprobe,
            "-v", "error",
            "-print_format", "json",
            "-show_streams",
            path,
        ]

        result = await self._run(cmd)

        if result.returncode != 0:
            logger.error(
                "ffprobe failed",
                extra={"path": path, "returncode": result.returncode, "stderr": result.stderr[-2000:]}
            )
            raise ExternalToolError(f"ffprobe exited with status {result.returncode}")

        geometry = parse_probe_output(result.stdout)

        logger.debug(
            "Inspected media file",
            extra={"path": path, "width": geometry.width, "height": geometry.height}
        )

        return geometry

    async def remux_fast_start(self, path: str) -> str:
        """
        Copy all streams into a new MP4 with the index moved to the front.

        -c copy means no re-encode: audio and video payload bytes are
        unchanged, only the container layout moves.
        """
        output_path = fast_start_output_path(path)
        cmd = [
            self._ffmpeg,
            "-y",  # overwrite
            "-i", path,
            "-c", "copy",
            "-movflags", "faststart",
            "-f", "mp4",
            output_path,
        ]

        try:
            result = await self._run(cmd)
        except ExternalToolError:
            _remove_quietly(output_path)
            raise

        if result.returncode != 0:
            logger.error(
                "ffmpeg fast-start remux failed",
                extra={"path": path, "returncode": result.returncode, "stderr": result.stderr[-2000:]}
            )
            _remove_quietly(output_path)
            raise ExternalToolError(f"ffmpeg exited with status {result.returncode}")

        logger.debug("Remuxed for fast start", extra={"path": path, "output_path": output_path})

        return output_path


class MockMediaTool(MediaTool):
    """
    Media tool for local development without FFmpeg.

    Reports canned geometry and "remuxes" by copying the file, so the
    rest of the pipeline runs unchanged.
    """

    def __init__(self, width: int = 1920, height: int = 1080) -> None:
        self.geometry = VideoGeometry(width=width, height=height)
        self.inspected: list[str] = []
        self.remuxed: list[str] = []
        logger.info("Initialized mock media tool")

    async def inspect(self, path: str) -> VideoGeometry:
        self.inspected.append(path)
        return self.geometry

    async def remux_fast_start(self, path: str) -> str:
        output_path = fast_start_output_path(path)
        await asyncio.to_thread(shutil.copyfile, path, output_path)
        self.remuxed.append(path)
        return output_path


def _remove_quietly(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning("Could not remove partial output", extra={"path": path, "error": str(e)})


def create_media_tool(
    mock_mode: bool = False,
    ffmpeg_path: str = "ffmpeg",
    ffprobe_path: str = "ffprobe",
    timeout_seconds: float = 300.0,
) -> MediaTool:
    """
    Factory function for the media tool.

    Args:
        mock_mode: If True, return mock tool (no FFmpeg required)

    Returns:
        MediaTool implementation
    """
    if mock_mode:
        return MockMediaTool()

    return FFmpegMediaTool(
        ffmpeg_path=ffmpeg_path,
        ffprobe_path=ffprobe_path,
        timeout_seconds=timeout_seconds,
    )
