# src/transcripts/__init__.py
# =============================
# Call Transcript Source — Audit Agent (Bland AI)
