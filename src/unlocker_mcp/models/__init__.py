"""Pydantic data models for tasks, links and solve responses.

This module defines the data structures used throughout the unlocker:
- Stored documents (Task, Link, ResultRecord, LogEntry)
- Solve entry point results (LinkOutcome, SolveTaskResponse)

All models use Pydantic v2 for validation and serialization.
"""

from unlocker_mcp.models.responses import (
    LinkOutcome,
    SolveTaskResponse,
)
from unlocker_mcp.models.task import (
    DEFERRED,
    SUCCESS_STATUSES,
    Link,
    LinkStatus,
    LogEntry,
    ResultRecord,
    Task,
    TaskStatus,
)

__all__ = [
    # Stored documents
    "Task",
    "Link",
    "LogEntry",
    "ResultRecord",
    "TaskStatus",
    "LinkStatus",
    "DEFERRED",
    "SUCCESS_STATUSES",
    # Entry point results
    "LinkOutcome",
    "SolveTaskResponse",
]
