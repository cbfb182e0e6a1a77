"""Core package: provides models, database helpers, the job queue, settings, and shared utilities."""

from .errors import WorkerError  # noqa: F401
from .models import Job, JobResult  # noqa: F401
from .settings import Settings  # noqa: F401
from .utils import get_logger  # noqa: F401
