"""Analysis API — start bulk runs, stream progress via SSE, fetch results."""

from __future__ import annotations

import asyncio
import json
import logging

from fastapi import APIRouter, BackgroundTasks, HTTPException
from pydantic import BaseModel
from sse_starlette.sse import EventSourceResponse

from blog_analysis.batch.progress import ProgressStream
from blog_analysis.models import AggregateOutcome, ProgressEvent
from blog_analysis.web import deps

logger = logging.getLogger(__name__)
router = APIRouter(tags=["analysis"])

# Live event streams keyed by run_id; the first SSE client to connect claims one
_streams: dict[int, ProgressStream] = {}
# Finished-target counts for runs still in progress
_finished: dict[int, int] = {}

# Closed streams nobody claimed are kept for late clients up to this many
MAX_UNCLAIMED_STREAMS = 20

_RUN_DONE = ("completed", "failed")


class AnalysisRequest(BaseModel):
    target_ids: list[str] = []
    skip_days: int | None = None


@router.get("/targets")
async def list_targets():
    store = deps.get_store()
    return [t.model_dump(mode="json") for t in store.list_all()]


@router.post("/analysis")
async def start_analysis(req: AnalysisRequest, background_tasks: BackgroundTasks):
    """Start a bulk run over the given targets (all when empty)."""
    store = deps.get_store()
    targets = store.load_many(req.target_ids) if req.target_ids else store.list_all()
    if not targets:
        raise HTTPException(status_code=404, detail="No matching targets")

    skip_days = req.skip_days if req.skip_days is not None else deps.get_config().skip_days
    run_id = store.create_run(len(targets), skip_days)
    stream = ProgressStream()
    _streams[run_id] = stream
    _finished[run_id] = 0

    background_tasks.add_task(_run_analysis, run_id, [t.id for t in targets], skip_days, stream)
    return {"run_id": run_id, "status": "running", "target_count": len(targets)}


@router.get("/analysis/runs")
async def list_runs():
    return deps.get_store().list_runs()


@router.get("/analysis/{run_id}/status")
async def analysis_status(run_id: int):
    run = deps.get_store().get_run(run_id)
    if not run:
        raise HTTPException(status_code=404, detail="Run not found")
    run.pop("result_json", None)
    if run["status"] == "completed":
        run["finished_targets"] = run["target_count"]
    else:
        run["finished_targets"] = _finished.get(run_id, 0)
    return run


@router.get("/analysis/{run_id}/stream")
async def analysis_stream(run_id: int):
    """SSE stream of per-target progress events, ending with a ``done`` event.

    Only the first client gets the per-target events; later clients wait for
    the run to finish and receive ``done`` alone.
    """
    store = deps.get_store()
    if not store.get_run(run_id):
        raise HTTPException(status_code=404, detail="Run not found")
    stream = _streams.pop(run_id, None)

    async def event_generator():
        if stream is not None:
            async for event in stream:
                yield {"event": "progress", "data": event.model_dump_json()}

        while True:
            run = store.get_run(run_id)
            if run is None:
                return
            if run["status"] in _RUN_DONE:
                break
            await asyncio.sleep(0.5)
        yield {"event": "done", "data": json.dumps(_run_summary(run))}

    return EventSourceResponse(event_generator())


@router.get("/analysis/{run_id}/result")
async def analysis_result(run_id: int):
    run = deps.get_store().get_run(run_id)
    if not run or run["status"] != "completed" or not run["result_json"]:
        raise HTTPException(status_code=404, detail="Result not available")
    return json.loads(run["result_json"])


def _run_summary(run: dict) -> dict:
    summary = {
        "run_id": run["id"],
        "status": run["status"],
        "total_cost": run["total_cost"],
        "error": run["error"],
    }
    if run["status"] == "completed" and run["result_json"]:
        outcome = AggregateOutcome.model_validate_json(run["result_json"])
        summary.update(
            succeeded=outcome.succeeded, skipped=outcome.skipped, failed=outcome.failed,
        )
    return summary


def _evict_unclaimed() -> None:
    closed = [run_id for run_id, s in _streams.items() if s.closed]
    for run_id in closed[:max(0, len(closed) - MAX_UNCLAIMED_STREAMS)]:
        del _streams[run_id]


async def _run_analysis(
    run_id: int, target_ids: list[str], skip_days: int, stream: ProgressStream,
) -> None:
    """Execute the bulk run in the background."""
    store = deps.get_store()

    def count_finished(event: ProgressEvent) -> None:
        if event.is_terminal:
            _finished[run_id] = _finished.get(run_id, 0) + 1

    try:
        targets = store.load_many(target_ids)
        analyzer = deps.build_analyzer(store)
        outcome = await analyzer.bulk_process(
            targets, on_progress=[stream, count_finished], skip_days=skip_days,
        )
        store.finish_run(
            run_id, "completed",
            total_cost=outcome.total_cost,
            result_json=outcome.model_dump_json(),
        )
    except Exception as e:
        logger.error("Bulk run %d failed: %s", run_id, e)
        store.finish_run(run_id, "failed", error=str(e))
    finally:
        stream.close()
        _finished.pop(run_id, None)
        _evict_unclaimed()
