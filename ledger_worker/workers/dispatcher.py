"""Route dequeued jobs to their registered handler and report the outcome."""

import time

from ledger_worker.core.models import Job, JobResult
from ledger_worker.core.utils import get_logger
from ledger_worker.handlers import HandlerRegistry, JobContext

logger = get_logger("ledger-worker.dispatcher")


class Dispatcher:
    """Dispatcher turns a job into a handler call and a :class:`JobResult`.

    Every failure is terminal: it is logged with its traceback and reported, never retried.
    """

    def __init__(self, context: JobContext) -> None:
        """Initialize Dispatcher with the context handed to every handler."""
        self.context = context

    def dispatch(self, job: Job) -> JobResult:
        """Run the handler registered for ``job.type``."""
        started = time.perf_counter()
        logger.info(f"Processing job: {job.id} (Type: {job.type})")
        try:
            handler_cls = HandlerRegistry.get(job.type)
            handler_cls(self.context).process(job)
        except Exception as exc:
            duration = time.perf_counter() - started
            logger.exception(f"Job {job.id} ({job.type}) failed after {duration:.3f}s")
            return JobResult(
                job_id=job.id,
                job_type=job.type,
                success=False,
                error=str(exc),
                duration_seconds=duration,
            )
        duration = time.perf_counter() - started
        logger.info(f"Completed job: {job.id} (Type: {job.type}) in {duration:.3f}s")
        return JobResult(job_id=job.id, job_type=job.type, success=True, duration_seconds=duration)
