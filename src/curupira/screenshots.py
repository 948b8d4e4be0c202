"""Screenshot persistence.

PUBLIC API:
  - ScreenshotStore: Protocol for persisting captured images
  - LocalScreenshotStore: Writes images under a directory, returns file:// URIs
"""

import json
import logging
import re
from pathlib import Path
from typing import Protocol

__all__ = ["ScreenshotStore", "LocalScreenshotStore"]

logger = logging.getLogger(__name__)


class ScreenshotStore(Protocol):
    def store(self, key: str, data: bytes, metadata: dict) -> str: ...


class LocalScreenshotStore:
    """Filesystem screenshot store.

    Each image is written as ``<key>`` with a ``<key>.json`` metadata sidecar.

    Args:
        directory: Target directory, created on first write.
    """

    def __init__(self, directory: str | Path):
        self.directory = Path(directory).expanduser()

    def store(self, key: str, data: bytes, metadata: dict) -> str:
        safe_key = re.sub(r"[^A-Za-z0-9._-]", "_", key)
        self.directory.mkdir(parents=True, exist_ok=True)

        path = self.directory / safe_key
        path.write_bytes(data)
        path.with_name(f"{safe_key}.json").write_text(json.dumps(metadata, indent=2))

        logger.debug(f"Stored screenshot {path} ({len(data)} bytes)")
        return path.resolve().as_uri()
