"""Process entry point: wires the reconcilers to the scheduler."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from confmirror.database import create_engine
from confmirror.filesystem.applier import FilesystemApplier, resolve_conf_root
from confmirror.services.adapter_config_service import AdapterConfigReconciler, ApplyReport
from confmirror.services.gateway import RemoteStoreGateway
from confmirror.services.main_config_service import MainConfigReconciler
from confmirror.services.scheduler import PeriodicTask, Scheduler
from confmirror.services.snapshot_service import SnapshotStore

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

    from confmirror.config import Settings

logger = logging.getLogger(__name__)


def _configure_logging(debug: bool) -> None:
    """Configure application logging."""
    level = logging.DEBUG if debug else logging.INFO
    fmt = "%(asctime)s %(levelname)-8s [%(threadName)s] %(name)s: %(message)s"
    logging.basicConfig(
        level=level,
        format=fmt,
        stream=sys.stdout,
        force=True,
    )
    # Quiet noisy libraries
    logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO if debug else logging.WARNING)


def conf_root_for(settings: Settings) -> Path:
    """Return the directory configs are mirrored into."""
    if settings.conf_dir is not None:
        return settings.conf_dir
    return resolve_conf_root(settings.resource_root)


def ensure_sqlite_dir(database_url: str) -> None:
    """Create the parent directory of a file-backed SQLite database."""
    if database_url.startswith("sqlite") and "///" in database_url:
        db_path = database_url.split("///", 1)[-1]
        if db_path and db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)


class ConfigMonitor:
    """Keeps the local conf tree in sync with the remote config tables.

    ``start()`` and ``destroy()`` are the only lifecycle calls a host process
    needs; ``load_once()`` runs both reconcilers synchronously.
    """

    def __init__(self, settings: Settings, engine: Engine | None = None) -> None:
        self.settings = settings
        self.applier = FilesystemApplier(conf_root_for(settings))
        owns_engine = engine is None
        if engine is None:
            ensure_sqlite_dir(settings.database_url)
            engine = create_engine(settings)
        self.gateway = RemoteStoreGateway(
            engine,
            main_config_id=settings.main_config_id,
            timezone=settings.database_timezone,
        )
        self.snapshot = SnapshotStore()
        self.main_reconciler = MainConfigReconciler(
            self.gateway, self.applier, filename=settings.main_config_filename
        )
        self.adapter_reconciler = AdapterConfigReconciler(
            self.gateway, self.snapshot, self.applier
        )
        self.scheduler = Scheduler(
            [
                PeriodicTask(
                    name=f"remote {settings.main_config_filename}",
                    func=self.main_reconciler.reconcile,
                    initial_delay=settings.initial_delay_seconds,
                    delay=settings.scan_interval_seconds,
                ),
                PeriodicTask(
                    name="remote adapter configs",
                    func=self.adapter_reconciler.reconcile,
                    initial_delay=settings.initial_delay_seconds,
                    delay=settings.scan_interval_seconds,
                ),
            ]
        )
        self.scheduler.on_shutdown(self.gateway.dispose if owns_engine else self.gateway.close)

    @property
    def conf_root(self) -> Path:
        return self.applier.root

    def load_once(self) -> tuple[bool, ApplyReport]:
        """Run the main and adapter reconcilers once, in the calling thread."""
        return self.main_reconciler.reconcile(), self.adapter_reconciler.reconcile()

    def start(self) -> None:
        logger.info("Mirroring remote configs into %s", self.conf_root)
        self.scheduler.start()

    def destroy(self) -> None:
        """Stop both scan tasks and release the remote connection."""
        self.scheduler.shutdown(wait=True)

    shutdown = destroy


def create_monitor(settings: Settings, engine: Engine | None = None) -> ConfigMonitor:
    """Validate settings, configure logging, and build a monitor."""
    settings.validate_runtime()
    _configure_logging(settings.debug)
    try:
        return ConfigMonitor(settings, engine=engine)
    except OSError as exc:
        logger.critical("Failed to initialize conf directory: %s", exc)
        raise
