"""Main config reconciler: mirrors the single well-known record to one file."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from confmirror.exceptions import RemoteStoreError

if TYPE_CHECKING:
    from confmirror.filesystem.applier import FilesystemApplier
    from confmirror.services.gateway import RemoteStoreGateway

logger = logging.getLogger(__name__)

# Below any real epoch-millisecond timestamp.
NEVER_APPLIED = -1


class MainConfigReconciler:
    """Overwrite the local main config file whenever the remote timestamp moves."""

    def __init__(
        self,
        gateway: RemoteStoreGateway,
        applier: FilesystemApplier,
        filename: str = "application.yml",
    ) -> None:
        self._gateway = gateway
        self._applier = applier
        self._filename = filename
        self.last_applied_timestamp = NEVER_APPLIED

    def reconcile(self) -> bool:
        """Run one tick. Returns True if the local file was rewritten."""
        try:
            record = self._gateway.query_main_config()
        except RemoteStoreError as exc:
            logger.error("Failed to load remote main config: %s", exc)
            return False
        if record is None:
            return False
        if record.modified_time == self.last_applied_timestamp:
            return False

        try:
            self._applier.write(self._filename, record.content)
        except OSError as exc:
            logger.error("Failed to write main config %s: %s", self._filename, exc)
            return False

        self.last_applied_timestamp = record.modified_time
        logger.info("Loaded remote main config: %s", self._filename)
        return True
