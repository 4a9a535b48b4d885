"""
Research API Routes

FastAPI routes for running literature searches and listing sources.
"""
import asyncio
import json
import queue
import threading
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from medsearch.core.dependencies import get_pipeline
from medsearch.core.logging import get_logger
from medsearch.core.rate_limit import RESEARCH_LIMIT, RESEARCH_STREAM_LIMIT, SOURCES_LIMIT, limiter
from medsearch.schemas.events import STEP_CONFIG, ErrorEvent, ProgressEvent, ProgressStep
from medsearch.schemas.research import RankedResultSet, ResearchRequest
from medsearch.services.retrieval import ResearchPipeline

logger = get_logger(__name__)

router = APIRouter(prefix="/api/research", tags=["research"])


@router.post("", response_model=RankedResultSet, response_model_by_alias=True)
@limiter.limit(RESEARCH_LIMIT)
async def run_research(
    request: Request,
    body: ResearchRequest,
    pipeline: ResearchPipeline = Depends(get_pipeline),
):
    """
    Run a tiered literature search for a clinical question.
    Always returns a result set; an empty one is annotated with the
    strategy that was attempted.
    """
    return await pipeline.search(body)


@router.post("/stream")
@limiter.limit(RESEARCH_STREAM_LIMIT)
async def run_research_stream(
    request: Request,
    body: ResearchRequest,
    pipeline: ResearchPipeline = Depends(get_pipeline),
):
    """
    Run a search with streaming progress updates.
    Sends Server-Sent Events while tiers run.

    Event types:
    - progress: Step-by-step progress updates with percentage
    - result: The final RankedResultSet
    - complete: Signal that streaming is done
    - error: Error if something fails
    """
    progress_queue: queue.Queue = queue.Queue()
    search_result = {"result": None, "error": None}

    def progress_callback(step: ProgressStep, message: str, detail: Optional[str] = None):
        """Callback that puts progress events into the queue."""
        config = STEP_CONFIG.get(step, {"progress": 0})
        progress_queue.put(ProgressEvent(
            step=step,
            message=message,
            detail=detail,
            progress_percent=config["progress"]
        ))

    def run_search():
        """Run the pipeline on its own event loop in a worker thread."""
        try:
            search_result["result"] = pipeline.search_sync(body, on_progress=progress_callback)
        except Exception as e:
            logger.exception("Streaming search failed")
            search_result["error"] = str(e)
        finally:
            progress_queue.put(None)

    async def event_generator():
        """Async generator that yields SSE events."""
        thread = threading.Thread(target=run_search, daemon=True)
        thread.start()

        loop = asyncio.get_running_loop()
        while True:
            try:
                event = await loop.run_in_executor(
                    None,
                    lambda: progress_queue.get(timeout=0.1)
                )
            except queue.Empty:
                continue

            if event is None:
                break

            event_data = {
                "step": event.step.value,
                "message": event.message,
                "detail": event.detail,
                "progress": event.progress_percent
            }
            yield f"event: progress\ndata: {json.dumps(event_data)}\n\n"

        thread.join(timeout=5.0)

        if search_result["error"]:
            error = ErrorEvent(message=search_result["error"])
            yield f"event: error\ndata: {error.model_dump_json()}\n\n"
            return

        result = search_result["result"]
        if result is not None:
            yield f"event: result\ndata: {result.model_dump_json(by_alias=True)}\n\n"
            yield f"event: complete\ndata: {json.dumps({'strategyUsed': result.strategy_used})}\n\n"

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "Access-Control-Allow-Origin": "*",
            "X-Accel-Buffering": "no",
        }
    )


@router.get("/sources")
@limiter.limit(SOURCES_LIMIT)
async def list_sources(
    request: Request,
    pipeline: ResearchPipeline = Depends(get_pipeline),
):
    """
    List the sources this deployment searches.
    """
    return {"sources": pipeline.source_names}
