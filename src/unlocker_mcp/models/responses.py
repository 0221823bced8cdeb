"""Pydantic models for solve responses."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class LinkOutcome(BaseModel):
    """Outcome of resolving a single link in one invocation."""

    lid: int | str = Field(description="Link id")
    status: str = Field(description="Terminal status (done, error or deferred)")
    final_link: str | None = Field(default=None, description="Resolved URL if done")
    error: str | None = Field(default=None, description="Failure message if any")
    attempts: int = Field(default=0, description="Number of chain attempts made")
    best_button_name: str | None = Field(default=None)
    all_available_buttons: list[Any] = Field(default_factory=list)

    @property
    def is_success(self) -> bool:
        return self.status in ("done", "success")


class SolveTaskResponse(BaseModel):
    """Aggregate counts returned by the batch solve entry point."""

    ok: bool = Field(default=True, description="Whether the invocation ran")
    task_id: str = Field(description="Task that was processed")
    processed: int = Field(description="Pending links picked up by this run")
    done: int = Field(description="Links resolved successfully")
    errors: int = Field(description="Links not resolved in this run")
    direct_count: int = Field(default=0, description="Links run concurrently")
    timer_count: int = Field(default=0, description="Links run sequentially")
    deferred: int = Field(default=0, description="Links deferred to a later run")
