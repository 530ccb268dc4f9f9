# src/workspace/__init__.py
# ===========================
# Google Workspace Adapters — Audit Agent
#
#   auth.py    service-account credentials → Drive + Sheets resources
#   drive.py   folder listing + file download
#   sheets.py  audit ledger rows
