"""Pydantic models for tasks, links and per-link result records."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

TaskStatus = Literal["pending", "processing", "completed", "failed"]
LinkStatus = Literal["pending", "processing", "done", "error", "deferred"]
LogType = Literal["info", "warn", "error", "success"]

# Result statuses that count as a successful resolution
SUCCESS_STATUSES = frozenset({"done", "success"})

# Written for links skipped when the time budget runs out; never counted
DEFERRED = "deferred"


class LogEntry(BaseModel):
    """Single structured log line attached to a link."""

    msg: str = Field(description="Human readable log message")
    type: LogType = Field(default="info", description="Severity of the log line")


class Link(BaseModel):
    """One candidate hosting URL inside a task."""

    model_config = ConfigDict(extra="allow")

    id: int | str = Field(description="Link id, unique within its task")
    link: str = Field(default="", description="Source URL to resolve")
    name: str | None = Field(default=None, description="Optional display name")
    status: LinkStatus | None = Field(default=None, description="Resolution status")
    final_link: str | None = Field(default=None, description="Resolved download URL")
    logs: list[LogEntry] = Field(default_factory=list, description="Resolution logs")
    best_button_name: str | None = Field(
        default=None, description="Name of the chosen download variant"
    )
    all_available_buttons: list[Any] = Field(
        default_factory=list, description="Every variant observed by the final stage"
    )


class Task(BaseModel):
    """Unit of work grouping every link for one item."""

    model_config = ConfigDict(extra="allow")

    id: str = Field(description="Task id")
    links: list[Link] = Field(default_factory=list, description="Ordered task links")
    status: TaskStatus = Field(default="pending", description="Task status")
    completed_links_count: int = Field(
        default=0, ge=0, description="Links with a counted terminal result"
    )
    created_at: str | None = Field(default=None, description="Creation timestamp")
    processing_started_at: str | None = Field(
        default=None, description="When the last invocation started processing"
    )
    completed_at: str | None = Field(default=None, description="Completion timestamp")
    extracted_by: str | None = Field(default=None, description="Actor tag")

    @property
    def total_links(self) -> int:
        return len(self.links)


class ResultRecord(BaseModel):
    """Stored outcome for one link, keyed by (task id, lid)."""

    lid: int | str = Field(description="Link id")
    link_url: str = Field(description="Original URL of the link")
    final_link: str | None = Field(default=None, description="Resolved download URL")
    status: str = Field(default="error", description="Terminal status for this run")
    error: str | None = Field(default=None, description="Failure message")
    logs: list[LogEntry] = Field(default_factory=list, description="Resolution logs")
    best_button_name: str | None = Field(default=None)
    all_available_buttons: list[Any] = Field(default_factory=list)
    extracted_by: str | None = Field(default=None, description="Actor tag")
    solved_at: str | None = Field(default=None, description="ISO-8601 write time")

    @property
    def is_success(self) -> bool:
        return self.status in SUCCESS_STATUSES

    @property
    def is_counted(self) -> bool:
        return self.status != DEFERRED
