"""Base job handler abstraction.

This module defines the abstract base class every job handler implements, and the
context object that hands handlers their collaborators (queue, gateway, aggregator
clients and clock).
"""

from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from ledger_worker.core.errors import MalformedPayloadError
from ledger_worker.core.gateway import LedgerGateway
from ledger_worker.core.models import Job
from ledger_worker.core.queue import JobQueue
from ledger_worker.services.plaid_client import PlaidClient
from ledger_worker.services.teller_client import TellerClient

PayloadT = TypeVar("PayloadT", bound=BaseModel)


@dataclass
class JobContext:
    """Collaborators shared by every handler; handlers keep no per-job state of their own."""

    queue: JobQueue
    gateway: LedgerGateway
    teller: TellerClient | None = None
    plaid: PlaidClient | None = None
    today: Callable[[], date] = field(default=date.today)


def parse_payload(model: type[PayloadT], job: Job) -> PayloadT:
    """Validate a job's ``data`` against a payload model."""
    try:
        return model.model_validate(job.data)
    except ValidationError as exc:
        msg = f"Invalid payload for {job.type} job {job.id}: {exc}"
        raise MalformedPayloadError(msg) from exc


class BaseHandler(ABC):
    """Abstract base class for all job handlers."""

    job_type: str = ""

    def __init__(self, context: JobContext) -> None:
        """Initialize the handler with the shared job context."""
        self.context = context

    @abstractmethod
    def process(self, job: Job) -> Any:
        """Process a single job; raising marks the job as failed."""
