"""
Local static-asset storage for thumbnails.

Thumbnails are small and public, so they are written to a directory that
a static file server exposes under /assets instead of going through the
object store. Files are named by a random key, never by video id, so a
replaced thumbnail gets a new URL and caches never serve a stale image.
"""

import logging
import os
import shutil
from pathlib import Path
from typing import BinaryIO

from ...core.media.errors import InternalError, PayloadTooLargeError
from ...core.media.uploads import copy_stream

logger = logging.getLogger(__name__)


class LocalAssetStore:
    def __init__(self, root: Path, base_url: str) -> None:
        self.root = Path(root)
        self.base_url = base_url.rstrip("/")
        self.root.mkdir(parents=True, exist_ok=True)

    def path_for(self, name: str) -> Path:
        return self.root / name

    def url_for(self, name: str) -> str:
        return f"{self.base_url}/assets/{name}"

    def name_from_url(self, url: str) -> str | None:
        """Asset file name for a URL this store produced, else None."""
        prefix = f"{self.base_url}/assets/"
        if not url.startswith(prefix):
            return None
        name = url[len(prefix):]
        if not name or "/" in name:
            return None
        return name

    def save(self, stream: BinaryIO, name: str, max_bytes: int) -> str:
        """
        Copy stream into the asset directory and return its public URL.

        The file is created exclusively; a partial file is removed if the
        copy fails or the stream is larger than max_bytes.
        """
        path = self.path_for(name)
        try:
            out = open(path, "xb")
        except OSError as e:
            logger.error("Failed to create asset", extra={"path": str(path), "error": str(e)})
            raise InternalError(f"Could not create asset file: {e}") from e

        try:
            with out:
                written = copy_stream(stream, out, max_bytes)
        except PayloadTooLargeError:
            self.delete(name)
            raise
        except OSError as e:
            self.delete(name)
            logger.error("Failed to write asset", extra={"path": str(path), "error": str(e)})
            raise InternalError(f"Could not write asset file: {e}") from e

        logger.info("Saved asset", extra={"path": str(path), "size_bytes": written})
        return self.url_for(name)

    def delete(self, name: str) -> None:
        try:
            os.remove(self.path_for(name))
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("Could not remove asset", extra={"asset_name": name, "error": str(e)})

    def free_bytes(self) -> int:
        """Free bytes on the asset volume, for readiness checks."""
        return shutil.disk_usage(self.root).free
