"""Handler registry mapping job types to handler classes.

Handlers register themselves with the ``HandlerRegistry.register`` decorator when
their module is imported, so adding a job type never touches the dispatcher.
"""

from collections.abc import Callable
from typing import ClassVar

from ledger_worker.core.errors import UnknownJobTypeError
from ledger_worker.handlers.base import BaseHandler


class HandlerRegistry:
    """Registry for job handler classes."""

    _registry: ClassVar[dict[str, type[BaseHandler]]] = {}

    @classmethod
    def register(cls, job_type: str) -> Callable[[type[BaseHandler]], type[BaseHandler]]:
        """Register a handler class for a job type."""

        def decorator(handler_cls: type[BaseHandler]) -> type[BaseHandler]:
            handler_cls.job_type = job_type
            cls._registry[job_type] = handler_cls
            return handler_cls

        return decorator

    @classmethod
    def get(cls, job_type: str) -> type[BaseHandler]:
        """Retrieve a handler class by job type."""
        try:
            return cls._registry[job_type]
        except KeyError:
            msg = f"unknown job type: {job_type}"
            raise UnknownJobTypeError(msg) from None

    @classmethod
    def available(cls) -> list[str]:
        """List all registered job types."""
        return list(cls._registry.keys())
