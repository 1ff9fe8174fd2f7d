"""Jobs API controller — job state lookups and the live job event stream."""

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import StreamingResponse

from retrieval_engine.application.schemas import JobStateResponse
from retrieval_engine.application.services import JobQueueService, SSEManager
from retrieval_engine.infrastructure.dependencies import get_job_queue_service, get_sse_manager

router = APIRouter(prefix="/jobs", tags=["Jobs"])


@router.get("/events")
async def job_event_stream(
    sse: SSEManager = Depends(get_sse_manager),
) -> StreamingResponse:
    """SSE stream of 'job_update' events as ingestion jobs progress."""
    return StreamingResponse(
        sse.subscribe(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


@router.get("/{queue_name}/{job_id}", response_model=JobStateResponse)
async def get_job_state(
    queue_name: str,
    job_id: str,
    service: JobQueueService = Depends(get_job_queue_service),
) -> JobStateResponse:
    state = await service.get_job_state(queue_name, job_id)
    if state is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job not found")
    return JobStateResponse(
        id=state.id,
        queue_name=queue_name,
        state=state.state.value,
        progress=state.progress,
        attempts_made=state.attempts_made,
        failed_reason=state.failed_reason,
        data=state.data,
    )
