"""File-backed storage for generated content.

Each save writes one UTF-8 text file named after the content type and the
save time at second resolution::

    generated_content/blog_post_20240315_142501.txt

Two saves of the same content type within the same second resolve to the
same locator; the later write replaces the earlier one. Writes go through a
temporary file and an atomic rename, so a reader never observes a partially
written file even when saves race.
"""

from __future__ import annotations

import asyncio
import os
import re
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Callable

from marlowequill.app.core.logging import get_logger
from marlowequill.app.exceptions import StorageError

logger = get_logger(__name__)

TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_-]")


def safe_content_type(content_type: str) -> str:
    """Reduce a content type to characters that are safe in a filename."""
    cleaned = _UNSAFE_CHARS.sub("_", content_type.strip())
    return cleaned or "content"


class ContentStore:
    """Persist generated content and hand back a locator."""

    def __init__(
        self,
        output_dir: str | Path = "generated_content",
        timeout: float = 10.0,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """Initialize the store.

        Args:
            output_dir: Directory that receives the files; created on demand
            timeout: Seconds a single save may take before StorageError
            clock: Source of the save time
        """
        self.output_dir = Path(output_dir)
        self.timeout = timeout
        self._clock = clock

    def locator_for(self, content_type: str, when: datetime) -> Path:
        filename = f"{safe_content_type(content_type)}_{when.strftime(TIMESTAMP_FORMAT)}.txt"
        return self.output_dir / filename

    def _write(self, path: Path, content: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(content)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    async def save(self, content: str, content_type: str) -> str:
        """Write ``content`` and return its locator.

        Raises:
            StorageError: If the directory or file cannot be written, the
                content cannot be encoded as UTF-8, or the write does not
                finish within the configured timeout
        """
        path = self.locator_for(content_type, self._clock())

        try:
            await asyncio.wait_for(
                asyncio.to_thread(self._write, path, content), timeout=self.timeout
            )
        except asyncio.TimeoutError as e:
            logger.error(f"Timed out writing {path}")
            raise StorageError(f"Timed out saving content to {path}") from e
        except OSError as e:
            logger.error(f"Failed to write {path}: {e}")
            raise StorageError(f"Failed to save content: {e.strerror or e}") from e
        except UnicodeError as e:
            logger.error(f"Content for {path} is not encodable as UTF-8: {e}")
            raise StorageError("Failed to save content: text is not valid UTF-8") from e

        logger.debug(f"Saved {len(content)} characters to {path}")
        return str(path)
