"""Task store collaborator for task documents and per-link result records."""

from unlocker_mcp.store.base import TaskNotFoundError, TaskStore
from unlocker_mcp.store.disk_store import DiskTaskStore, get_store

__all__ = ["TaskStore", "TaskNotFoundError", "DiskTaskStore", "get_store"]
