"""FastAPI dependencies for DI (queue).

The queue is built once by the application lifespan and stored on ``app.state``; routes
reach it through :func:`get_queue`, which tests override with an in-memory double.
"""

from fastapi import Request

from ledger_worker.core.queue import JobQueue


def get_queue(request: Request) -> JobQueue:
    """Provide the process-wide JobQueue for dependency injection."""
    return request.app.state.queue
