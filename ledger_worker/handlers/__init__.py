"""Handlers package: the handler registry, base class, and one handler per job type.

Importing this package registers every handler.
"""

from . import daily_balance, diagnostics, plaid, teller  # noqa: F401
from .base import BaseHandler, JobContext  # noqa: F401
from .registry import HandlerRegistry  # noqa: F401
