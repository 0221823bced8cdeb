"""Business logic for the batch and streaming solve entry points."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Sequence
from typing import Any

from unlocker_mcp.cache import TaskViewCache, get_task_views
from unlocker_mcp.core.dispatcher import is_pending, merge_link_states
from unlocker_mcp.core.persistence import utc_now
from unlocker_mcp.core.pipeline import DEFAULT_ACTOR, LinkPipeline
from unlocker_mcp.core.providers import get_pipeline
from unlocker_mcp.core.streaming import stream_solve
from unlocker_mcp.models import Link, SolveTaskResponse, Task
from unlocker_mcp.store import TaskStore, get_store

logger = logging.getLogger(__name__)


def parse_links(items: Sequence[Any]) -> list[Link]:
    """Validate caller-supplied links.

    Raises:
        ValueError: If a link lacks an id or URL (pydantic.ValidationError included)
    """
    links = []
    for item in items:
        link = item if isinstance(item, Link) else Link.model_validate(item)
        if not link.link:
            raise ValueError(f"Link {link.id} has no URL")
        links.append(link)
    return links


async def solve_task(
    task_id: str,
    links: Sequence[Link] | None = None,
    extracted_by: str | None = None,
    store: TaskStore | None = None,
    pipeline: LinkPipeline | None = None,
) -> SolveTaskResponse:
    """Resolve every pending link of a task and persist the results.

    Args:
        task_id: Task to process
        links: Explicit links to process (default: the task's stored links)
        extracted_by: Actor tag stored with the task and each result
        store: Task store (default: the global disk store)
        pipeline: Pipeline to run (default: built from runtime config)

    Returns:
        SolveTaskResponse with aggregate counts

    Raises:
        TaskNotFoundError: If the task does not exist
    """
    store = store if store is not None else get_store()
    pipeline = pipeline if pipeline is not None else get_pipeline(store)
    extracted_by = extracted_by or DEFAULT_ACTOR

    task = await store.get_task(task_id)

    if links:
        all_links = list(links)
    else:
        all_links = merge_link_states(task.links, await store.list_results(task_id))

    pending = [link for link in all_links if is_pending(link)]
    if not pending:
        # Heal a task whose last run was counted but never finalized
        try:
            await pipeline.persistence.check_completion(task_id)
        except Exception as e:
            logger.error(f"Completion check failed for task {task_id}: {e}")
        return SolveTaskResponse(task_id=task_id, processed=0, done=0, errors=0)

    fields: dict[str, Any] = {
        "extracted_by": extracted_by,
        "processing_started_at": utc_now(),
    }
    if task.status in ("pending", "processing"):
        fields["status"] = "processing"
    await store.update_task_fields(task_id, fields)

    run = await pipeline.run(all_links, task_id, extracted_by, started_at=pipeline.clock())

    processed = run.routed.total
    done = run.done
    logger.info(
        f"Task {task_id}: processed={processed} done={done} deferred={len(run.deferred)}"
    )

    return SolveTaskResponse(
        task_id=task_id,
        processed=processed,
        done=done,
        errors=processed - done,
        direct_count=len(run.routed.direct_class),
        timer_count=len(run.routed.timer_class),
        deferred=len(run.deferred),
    )


async def stream_solve_events(
    links: Sequence[Link],
    task_id: str | None = None,
    extracted_by: str | None = None,
    store: TaskStore | None = None,
    views: TaskViewCache | None = None,
    pipeline: LinkPipeline | None = None,
) -> AsyncIterator[dict[str, Any]]:
    """Resolve links and yield progress events, tracking them in the task view cache.

    Args:
        links: Links to resolve
        task_id: Optional task to persist results into
        extracted_by: Actor tag stored with each result
        store: Task store (default: the global disk store)
        views: Task view cache (default: the global cache)
        pipeline: Pipeline to run (default: built from runtime config)

    Yields:
        Progress event dicts
    """
    if pipeline is None:
        pipeline = get_pipeline(store)
    views = views if views is not None else get_task_views()

    observer = None
    if task_id is not None:
        views.start_stream(task_id)

        def observer(event: dict[str, Any]) -> None:
            views.observe(task_id, event)

    try:
        async for event in stream_solve(
            pipeline, links, task_id, extracted_by or DEFAULT_ACTOR, observer
        ):
            yield event
    finally:
        if task_id is not None:
            views.end_stream(task_id)


async def get_task_view(
    task_id: str,
    store: TaskStore | None = None,
    views: TaskViewCache | None = None,
) -> Task:
    """Read a task with stored results and live stream state merged in."""
    store = store if store is not None else get_store()
    views = views if views is not None else get_task_views()
    return await views.get_task(store, task_id)


async def ensure_task(task_id: str, store: TaskStore | None = None) -> Task:
    """Fetch a task, raising TaskNotFoundError if it does not exist."""
    store = store if store is not None else get_store()
    return await store.get_task(task_id)
