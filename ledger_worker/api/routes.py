"""FastAPI endpoints for the ledger worker.

This module defines the worker's small HTTP surface: an endpoint that lets other
services enqueue jobs, and a health check.
"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ledger_worker.api.dependencies import get_queue
from ledger_worker.core.errors import QueueError
from ledger_worker.core.models import EnqueueRequest, EnqueueResponse, HealthStatus
from ledger_worker.core.queue import JobQueue
from ledger_worker.core.utils import get_logger, utcnow_iso

router = APIRouter()
logger = get_logger("ledger-worker.api")


@router.post(
    "/enqueue",
    status_code=202,
    response_model=EnqueueResponse,
    summary="Enqueue a background job",
    description=(
        "Push a job onto the durable queue. Any non-empty job type is accepted here; "
        "a type with no registered handler fails when a worker picks it up.\n\n"
        "**Request body:** `{ 'type': '<job type>', 'data': <any JSON> }`\n\n"
        "**Response:**\n"
        "- 202 Accepted: `{ 'success': true, 'job_id': '<id>', 'message': ... }`.\n"
        "- 400 Bad Request: malformed body or empty job type.\n"
        "- 500 Internal Server Error: the queue could not be reached."
    ),
    response_description="Job accepted. Returns job_id.",
    responses={
        202: {
            "description": "Job accepted.",
            "content": {
                "application/json": {
                    "example": {"success": True, "job_id": "job_1716026449000000000", "message": "Job enqueued"}
                }
            },
        },
        400: {
            "description": "Malformed request.",
            "content": {"application/json": {"example": {"success": False, "message": "Invalid request body"}}},
        },
        500: {"description": "Queue unavailable."},
    },
)
def enqueue(body: EnqueueRequest, queue: JobQueue = Depends(get_queue)) -> EnqueueResponse | JSONResponse:
    """Enqueue a job and return its id."""
    try:
        job_id = queue.enqueue(body.type, body.data)
    except QueueError:
        logger.exception(f"Failed to enqueue job of type {body.type}")
        return JSONResponse(
            status_code=500,
            content=EnqueueResponse(success=False, message="Failed to enqueue job").model_dump(),
        )
    return EnqueueResponse(success=True, job_id=job_id, message=f"Job of type '{body.type}' enqueued")


@router.get(
    "/health",
    response_model=HealthStatus,
    summary="Health check",
    description="Simple health check endpoint. Returns status healthy and the current UTC time.",
    response_description="Status healthy.",
    responses={
        200: {
            "description": "Worker is healthy.",
            "content": {"application/json": {"example": {"status": "healthy", "time": "2025-05-18T10:30:49+00:00"}}},
        }
    },
)
async def health() -> HealthStatus:
    """Health check endpoint."""
    return HealthStatus(status="healthy", time=utcnow_iso())
