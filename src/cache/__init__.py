# src/cache/__init__.py
# =======================
# Drive Index Cache — Audit Agent
#
# Public API:
#   FileIndexCache(drive, cache_dir)
#       .init(root_id) / .rebuild() / .list_paths(prefix) / .get_text(path)

from src.cache.drive_index import FileIndexCache, IndexEntry  # noqa: F401

__all__ = ["FileIndexCache", "IndexEntry"]
