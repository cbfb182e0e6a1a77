"""Exception hierarchy for the ledger worker.

Every job failure is terminal: handlers raise one of these (or let a lower-level
exception escape) and the dispatcher reports the job as failed. Nothing here is
retried.
"""


class WorkerError(Exception):
    """Base class for all worker errors."""


class StartupError(WorkerError):
    """A resource required at process start could not be acquired."""


class QueueError(WorkerError):
    """The durable queue could not be reached or returned an unreadable envelope."""


class AggregatorError(WorkerError):
    """An external aggregator API call failed or returned an unexpected response."""


class MalformedPayloadError(WorkerError):
    """A job payload is missing a field or has a field of the wrong type."""


class UnknownJobTypeError(WorkerError):
    """No handler is registered for a job type."""


class RecordNotFoundError(WorkerError):
    """A row the job depends on does not exist."""


class TokenAlreadyProcessedError(WorkerError):
    """An aggregator access token has already been consumed by an initial sync."""
