"""Database engine creation."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import create_engine as sa_create_engine
from sqlalchemy.engine import make_url

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

    from confmirror.config import Settings


def _engine_options(database_url: str, timeout: float) -> dict[str, Any]:
    """Driver-specific options bounding how long a connect or checkout may block."""
    backend = make_url(database_url).get_backend_name()
    if backend == "sqlite":
        # Both scan tasks share one connection from different worker threads.
        return {"connect_args": {"check_same_thread": False, "timeout": timeout}}
    options: dict[str, Any] = {"pool_timeout": timeout}
    if backend in ("mysql", "mariadb", "postgresql"):
        options["connect_args"] = {"connect_timeout": int(timeout)}
    return options


def create_engine(settings: Settings) -> Engine:
    """Create the engine used by the remote store gateway."""
    return sa_create_engine(
        settings.database_url,
        echo=settings.debug,
        pool_pre_ping=True,
        **_engine_options(settings.database_url, settings.query_timeout_seconds),
    )
