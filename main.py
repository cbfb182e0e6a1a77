"""Main entrypoint and application factory for the Ledger Worker.

This module configures logging, wires the queue, database gateway and aggregator clients
together, starts the worker pool for the lifetime of the FastAPI application, and exposes
the Scalar API reference endpoint for interactive OpenAPI documentation. It also includes
the main entrypoint for running the app with Uvicorn.
"""

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from scalar_fastapi import get_scalar_api_reference

from ledger_worker.api.routes import router
from ledger_worker.core.db import create_db_engine, init_db, make_session_factory
from ledger_worker.core.gateway import LedgerGateway
from ledger_worker.core.models import EnqueueResponse
from ledger_worker.core.queue import JobQueue
from ledger_worker.core.settings import Settings, get_settings
from ledger_worker.core.utils import LOGGER_NAMESPACE, get_logger
from ledger_worker.handlers import JobContext
from ledger_worker.services.plaid_client import PlaidClient
from ledger_worker.services.teller_client import TellerClient
from ledger_worker.workers.dispatcher import Dispatcher
from ledger_worker.workers.job_runner import JobRunner, enqueue_sample_jobs

logger = get_logger("ledger-worker.main")


# --- Logging Setup ---
def setup_logging(settings: Settings) -> None:
    """Configure logging to console and to the configured log file."""
    log_path = Path(settings.log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    base = get_logger(LOGGER_NAMESPACE)
    base.setLevel(logging.INFO)
    # Add file handler for persistent logs (not colorized)
    if not any(isinstance(h, logging.FileHandler) for h in base.handlers):
        file_handler = logging.FileHandler(log_path)
        file_handler.setLevel(logging.INFO)
        file_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s"))
        base.addHandler(file_handler)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Acquire every long-lived resource, run the worker pool, and release it all on shutdown.

    Any resource that cannot be acquired (database, Redis, the Teller client certificate,
    Plaid credentials) aborts startup.
    """
    settings = get_settings()
    setup_logging(settings)

    engine = create_db_engine(settings.database_url)
    init_db(engine)
    gateway = LedgerGateway(make_session_factory(engine))

    queue = JobQueue.from_settings(settings)
    queue.ping()
    logger.info(f"Connected to Redis; queue '{queue.name}' holds {queue.depth()} jobs")

    teller = TellerClient.from_settings(settings)
    plaid = PlaidClient.from_settings(settings)

    context = JobContext(queue=queue, gateway=gateway, teller=teller, plaid=plaid)
    runner = JobRunner(
        queue,
        Dispatcher(context),
        worker_count=settings.worker_count,
        dequeue_timeout=settings.dequeue_timeout_seconds,
    )
    app.state.queue = queue
    app.state.runner = runner

    if settings.enqueue_sample_jobs:
        enqueue_sample_jobs(queue)
    runner.start()
    try:
        yield
    finally:
        logger.info("Shutting down workers...")
        await asyncio.to_thread(runner.stop)
        teller.close()
        engine.dispose()


app = FastAPI(
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    title="Ledger Worker",
    description="""
    The Ledger Worker drains a durable job queue: it links Teller and Plaid accounts, syncs their
    transactions into the ledger database, and recomputes each month's per-category daily allowance.

    **Endpoints:**
    - `POST /enqueue`: Enqueue a job. Returns a `job_id`.
    - `GET /health`: Health check endpoint.
    - `GET /scalar`: Interactive Scalar OpenAPI documentation.
    """,
    version="1.0.0",
)
app.include_router(router)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report malformed request bodies as 400 with the enqueue response shape."""
    logger.warning(f"Rejected request to {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=400,
        content=EnqueueResponse(success=False, message="Invalid request body").model_dump(),
    )


@app.get("/scalar", include_in_schema=False)
async def scalar_docs() -> JSONResponse:
    """Return Scalar API reference."""
    return get_scalar_api_reference(openapi_url=app.openapi_url, title=app.title)


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run("main:app", host=settings.server_host, port=settings.server_port)
