"""Estimate cache for the cost finder.

Persists finished estimates keyed by ``lowercase(ingredient)::locationCode``
in a single indented JSON file. The file is read once when the cache is
created and rewritten in full on every put. Entries never expire.

Writers in one process are serialized by an asyncio lock and each write
goes through a temp file plus ``os.replace``. Separate processes sharing
a file are still last-writer-wins.
"""

import asyncio
import json
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Iterator, Optional, Union

import structlog

from cost_finder.config.errors import CostFinderError, ErrorCode

logger = structlog.get_logger()


class EstimateCache:
    """Flat-file key/value store for cost estimates.

    A cache created with ``path=None`` keeps entries in memory only.
    """

    def __init__(self, path: Union[str, Path, None] = None):
        """Initialize EstimateCache.

        Args:
            path: JSON file backing the cache. Missing files start empty.
        """
        self.path = Path(path) if path else None
        self._entries: Dict[str, Dict[str, Any]] = self._load()
        self._lock = asyncio.Lock()

    def _load(self) -> Dict[str, Dict[str, Any]]:
        if self.path is None or not self.path.exists():
            return {}

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(
                "estimate_cache_load_failed",
                path=str(self.path),
                error=str(e),
                message="Starting with empty cache"
            )
            return {}

        if not isinstance(data, dict):
            logger.warning(
                "estimate_cache_load_failed",
                path=str(self.path),
                error=f"expected object, got {type(data).__name__}",
                message="Starting with empty cache"
            )
            return {}

        logger.debug("estimate_cache_loaded", path=str(self.path), entries=len(data))
        return data

    def _write(self, snapshot: str) -> None:
        """Atomically replace the cache file with ``snapshot``."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            dir=str(self.path.parent),
            prefix=f".{self.path.name}.",
            suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(snapshot)
            os.replace(tmp_path, self.path)
        except OSError:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        """Return the stored entry for ``key``, or None."""
        return self._entries.get(key)

    async def put(self, key: str, entry: Dict[str, Any]) -> None:
        """Store ``entry`` under ``key`` and persist the whole cache.

        A failed write restores the previous in-memory entry for ``key``.

        Raises:
            CostFinderError: If the cache file cannot be written.
        """
        async with self._lock:
            previous = self._entries.get(key)
            self._entries[key] = entry
            if self.path is None:
                return

            snapshot = json.dumps(self._entries, indent=2)
            try:
                await asyncio.to_thread(self._write, snapshot)
            except OSError as e:
                if previous is None:
                    self._entries.pop(key, None)
                else:
                    self._entries[key] = previous
                logger.error("estimate_cache_write_failed", path=str(self.path), error=str(e))
                raise CostFinderError(
                    code=ErrorCode.CACHE_WRITE_FAILED,
                    message=f"Failed to write estimate cache: {str(e)}",
                    details={"path": str(self.path), "key": key}
                ) from e

            logger.debug("estimate_cache_saved", key=key, entries=len(self._entries))

    def clear(self) -> None:
        """Drop all in-memory entries. The file is rewritten on the next put."""
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)
