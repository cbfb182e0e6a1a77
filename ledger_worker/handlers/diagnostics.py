"""Diagnostic job handlers that only log."""

from ledger_worker.core.models import Job
from ledger_worker.core.utils import get_logger
from ledger_worker.handlers.base import BaseHandler
from ledger_worker.handlers.registry import HandlerRegistry

logger = get_logger("ledger-worker.handlers.diagnostics")


@HandlerRegistry.register("hello_world")
class HelloWorldHandler(BaseHandler):
    """Log a greeting."""

    def process(self, job: Job) -> None:
        logger.info(f"Hello world from job {job.id}")


@HandlerRegistry.register("print_message")
class PrintMessageHandler(BaseHandler):
    """Log the job's data as a message."""

    def process(self, job: Job) -> None:
        logger.info(f"Message from job {job.id}: {job.data}")
