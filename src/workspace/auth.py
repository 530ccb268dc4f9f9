"""
src/workspace/auth.py
======================
Google Service-Account Bootstrap — Audit Agent

Responsibility:
    - Load service-account credentials from the configured key file
    - Build the Drive v3 and Sheets v4 API resources shared by the process

This module does NOT:
    - List, download, or write anything
    - Cache credentials beyond the resources it returns
"""

import logging
from typing import Any

from google.oauth2.service_account import Credentials
from googleapiclient.discovery import build

logger = logging.getLogger("auditagent.workspace.auth")

SCOPES = [
    "https://www.googleapis.com/auth/drive.readonly",
    "https://www.googleapis.com/auth/spreadsheets",
]


def build_services(key_path: str) -> tuple[Any, Any]:
    """
    Build authenticated Drive and Sheets API resources.

    Args:
        key_path: Path to the service-account JSON key file.

    Returns:
        (drive, sheets) googleapiclient Resource objects.
    """
    credentials = Credentials.from_service_account_file(key_path, scopes=SCOPES)
    drive = build("drive", "v3", credentials=credentials, cache_discovery=False)
    sheets = build("sheets", "v4", credentials=credentials, cache_discovery=False)
    logger.info("Google services ready for %s", credentials.service_account_email)
    return drive, sheets
