"""
src/workspace/drive.py
=======================
Google Drive Client — Audit Agent

Responsibility:
    - List the immediate, non-trashed children of a folder
      (following pagination)
    - Download a file's raw content as text

The calls are blocking; async callers run them through asyncio.to_thread.

This module does NOT:
    - Walk folder trees or decide which files are eligible
      (handled by src.cache.drive_index)
    - Cache anything
"""

import logging
from typing import Any

logger = logging.getLogger("auditagent.workspace.drive")

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"

_LIST_FIELDS = "nextPageToken, files(id,name,mimeType,modifiedTime)"


class DriveClient:
    """Thin wrapper over a Drive v3 Resource."""

    def __init__(self, service: Any) -> None:
        self._service = service

    def list_children(self, folder_id: str) -> list[dict[str, Any]]:
        """
        Return every non-trashed child of ``folder_id``.

        Each entry carries: id, name, mimeType, modifiedTime.
        """
        query = f"'{folder_id}' in parents and trashed = false"
        children: list[dict[str, Any]] = []
        page_token: str | None = None

        while True:
            response = (
                self._service.files()
                .list(q=query, fields=_LIST_FIELDS, pageToken=page_token)
                .execute()
            )
            children.extend(response.get("files", []))
            page_token = response.get("nextPageToken")
            if not page_token:
                break

        logger.debug("Listed %d children of folder %s", len(children), folder_id)
        return children

    def download_text(self, file_id: str) -> str:
        """Download a file's media content and decode it as UTF-8."""
        data = self._service.files().get_media(fileId=file_id).execute()
        if isinstance(data, bytes):
            return data.decode("utf-8", errors="replace")
        return str(data)
