"""API package: provides FastAPI dependencies and route definitions for the worker."""

from .dependencies import get_queue  # noqa: F401
from .routes import router  # noqa: F401
