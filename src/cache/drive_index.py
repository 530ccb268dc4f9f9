"""
src/cache/drive_index.py
=========================
Drive File Index Cache — Audit Agent

Responsibility:
    - Maintain a flat index of the reference tree:
          "Knowledge_Base/Sales/pricing.txt" → {id, mtime}
    - Persist the index as one JSON file, overwritten on every rebuild
    - Detect staleness with a cheap probe of the root's immediate children
    - Memoize downloaded text per path until the next rebuild

Staleness probe:
    Only the root's immediate folders and .txt files are compared
    (name + modifiedTime); other files are never indexed and are ignored.
    A change nested deeper than that, which does not also change a
    top-level folder's modifiedTime, is NOT detected until the next
    scheduled rebuild.

Folders are recorded in the index (flagged ``folder``) so the probe can
compare top-level folders as well as files; list_paths() never returns
them.

This module does NOT:
    - Decide when to rebuild (handled by src.audit.scheduler)
    - Patch the index incrementally
"""

import asyncio
import json
import logging
import os
from dataclasses import dataclass
from typing import Any

from src.workspace.drive import FOLDER_MIME_TYPE

logger = logging.getLogger("auditagent.cache.drive_index")

INDEX_FILE_NAME = "drive_index.json"
ELIGIBLE_SUFFIX = ".txt"


@dataclass(frozen=True)
class IndexEntry:
    """One indexed Drive object, keyed by its '/'-joined relative path."""

    path: str
    remote_id: str
    last_modified: str
    is_folder: bool = False

    def to_json(self) -> dict[str, Any]:
        record: dict[str, Any] = {"id": self.remote_id, "mtime": self.last_modified}
        if self.is_folder:
            record["folder"] = True
        return record

    @classmethod
    def from_json(cls, path: str, record: dict[str, Any]) -> "IndexEntry":
        return cls(
            path=path,
            remote_id=record["id"],
            last_modified=record.get("mtime", ""),
            is_folder=bool(record.get("folder", False)),
        )


def _is_indexable(child: dict[str, Any]) -> bool:
    return child.get("mimeType") == FOLDER_MIME_TYPE or child["name"].endswith(ELIGIBLE_SUFFIX)


class FileIndexCache:
    """
    Path → remote-id index over a Drive folder tree, with text memo.

    ``drive`` is any object exposing ``list_children(folder_id)`` and
    ``download_text(file_id)`` (see src.workspace.drive.DriveClient).
    Its calls block, so they run through asyncio.to_thread.
    """

    def __init__(self, drive: Any, cache_dir: str = ".cache") -> None:
        self._drive = drive
        self._cache_dir = cache_dir
        self._index: dict[str, IndexEntry] = {}
        self._text_memo: dict[str, str] = {}
        self._root_id: str | None = None

    @property
    def index_file(self) -> str:
        return os.path.join(self._cache_dir, INDEX_FILE_NAME)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _load(self) -> None:
        if not os.path.exists(self.index_file):
            return
        try:
            with open(self.index_file, encoding="utf-8") as fh:
                raw = json.load(fh)
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable index file %s: %s", self.index_file, exc)
            return
        self._index = {
            path: IndexEntry.from_json(path, record) for path, record in raw.items()
        }
        logger.debug("Loaded %d index entries from %s", len(self._index), self.index_file)

    def _save(self) -> None:
        os.makedirs(self._cache_dir, exist_ok=True)
        payload = {path: entry.to_json() for path, entry in self._index.items()}
        with open(self.index_file, "w", encoding="utf-8") as fh:
            json.dump(payload, fh)

    # ------------------------------------------------------------------
    # Staleness probe + rebuild
    # ------------------------------------------------------------------

    async def _is_stale(self, root_id: str) -> bool:
        children = await asyncio.to_thread(self._drive.list_children, root_id)
        for child in children:
            # Only folders and .txt files are ever indexed.
            if not _is_indexable(child):
                continue
            cached = self._index.get(child["name"])
            if cached is None or cached.last_modified != child.get("modifiedTime"):
                logger.debug("Index stale at top-level entry %r", child["name"])
                return True
        return False

    async def _walk(
        self,
        folder_id: str,
        prefix: str,
        accumulator: dict[str, IndexEntry],
    ) -> None:
        children = await asyncio.to_thread(self._drive.list_children, folder_id)
        for child in children:
            rel = f"{prefix}/{child['name']}" if prefix else child["name"]
            modified = child.get("modifiedTime", "")
            if child.get("mimeType") == FOLDER_MIME_TYPE:
                accumulator[rel] = IndexEntry(rel, child["id"], modified, is_folder=True)
                await self._walk(child["id"], rel, accumulator)
            elif child["name"].endswith(ELIGIBLE_SUFFIX):
                accumulator[rel] = IndexEntry(rel, child["id"], modified)

    async def init(self, root_id: str) -> None:
        """
        Load the persisted index, probe for staleness, rebuild if needed.

        Args:
            root_id: Drive folder id of the reference tree root.
        """
        self._root_id = root_id
        self._load()

        if self._index and not await self._is_stale(root_id):
            logger.debug("Drive index cache is fresh")
            return

        await self.rebuild(root_id)

    async def rebuild(self, root_id: str | None = None) -> int:
        """
        Walk the whole tree, replace every entry, clear the text memo and
        overwrite the persisted index.

        Returns:
            Number of eligible files indexed.
        """
        root = root_id or self._root_id
        if not root:
            raise ValueError("rebuild() needs a root folder id; call init() first")
        self._root_id = root

        logger.info("Rebuilding Drive index cache...")
        fresh: dict[str, IndexEntry] = {}
        await self._walk(root, "", fresh)

        self._index = fresh
        self._text_memo = {}
        self._save()

        file_count = len(self.list_paths())
        logger.info("Drive index rebuilt — %d %s files", file_count, ELIGIBLE_SUFFIX)
        return file_count

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def list_paths(self, prefix: str = "") -> list[str]:
        """Return every indexed file path starting with ``prefix``."""
        return [
            path
            for path, entry in self._index.items()
            if not entry.is_folder and path.startswith(prefix)
        ]

    def entry(self, path: str) -> IndexEntry | None:
        return self._index.get(path)

    async def get_text(self, path: str) -> str:
        """
        Return the text of ``path``, downloading it at most once.

        Unknown paths (and folders) yield an empty string.
        """
        if path in self._text_memo:
            return self._text_memo[path]

        entry = self._index.get(path)
        if entry is None or entry.is_folder:
            logger.debug("get_text: %r is not an indexed file", path)
            return ""

        text = await asyncio.to_thread(self._drive.download_text, entry.remote_id)
        self._text_memo[path] = text
        logger.debug("Fetched %s (%d chars)", path, len(text))
        return text
