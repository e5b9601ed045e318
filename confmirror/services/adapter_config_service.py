"""Adapter config reconciler: mirrors every (category, name) record to conf/<category>/<name>.

Change detection trusts ``modified_time`` alone. A content edit that does not
bump the timestamp is invisible, and two edits inside one scan interval are
observed as one.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from confmirror.exceptions import RemoteStoreError, UnsafePathError
from confmirror.filesystem.applier import validate_key
from confmirror.services.snapshot_service import diff_snapshot, index_by_key

if TYPE_CHECKING:
    from confmirror.filesystem.applier import FilesystemApplier
    from confmirror.models.record import ConfigRecord
    from confmirror.services.gateway import RemoteStoreGateway
    from confmirror.services.snapshot_service import SnapshotStore

logger = logging.getLogger(__name__)


@dataclass
class ConfigChanges:
    """Records to write and keys to delete for one tick."""

    changed: dict[str, ConfigRecord] = field(default_factory=dict)
    removed: set[str] = field(default_factory=set)

    def is_empty(self) -> bool:
        return not self.changed and not self.removed


@dataclass
class ApplyReport:
    """Outcome of applying one tick's changes to disk."""

    written: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)

    @property
    def has_changes(self) -> bool:
        return bool(self.written or self.removed)


class AdapterConfigReconciler:
    """Diff remote adapter configs against the snapshot and apply the result."""

    def __init__(
        self,
        gateway: RemoteStoreGateway,
        snapshot: SnapshotStore,
        applier: FilesystemApplier,
    ) -> None:
        self._gateway = gateway
        self._snapshot = snapshot
        self._applier = applier

    def _fetch_content(self, ids: set[int]) -> list[ConfigRecord]:
        """Fetch full records, falling back to one query per id if the batch fails."""
        try:
            return self._gateway.query_content(ids)
        except RemoteStoreError as exc:
            if len(ids) == 1:
                logger.error("Failed to fetch adapter config content: %s", exc)
                return []
            logger.warning(
                "Batch content fetch failed, fetching %d ids one by one: %s", len(ids), exc
            )

        records: list[ConfigRecord] = []
        for config_id in sorted(ids):
            try:
                records.extend(self._gateway.query_content({config_id}))
            except RemoteStoreError as exc:
                logger.error("Failed to fetch adapter config id=%d: %s", config_id, exc)
        return records

    def compute_changes(self) -> ConfigChanges | None:
        """Scan remote metadata and work out what changed since the last applied state.

        Returns None when nothing changed. Raises RemoteStoreError if the
        metadata scan fails; the snapshot is not touched here.
        """
        remote = index_by_key(self._gateway.query_metadata())
        diff = diff_snapshot(self._snapshot.items(), remote)

        changes = ConfigChanges(removed=diff.removed_keys)
        if diff.changed_ids:
            # A row deleted since the scan is missing here; the next scan
            # reports it as removed.
            for record in self._fetch_content(diff.changed_ids):
                changes.changed[record.key] = record

        if changes.is_empty():
            return None
        return changes

    def apply(self, changes: ConfigChanges) -> ApplyReport:
        """Write changed records and delete removed keys, one record at a time.

        The snapshot only records what actually reached disk, so a record that
        fails here is retried on the next tick.
        """
        report = ApplyReport()
        for key, record in sorted(changes.changed.items()):
            try:
                self._applier.write(validate_key(record.category, record.name), record.content)
            except (OSError, UnsafePathError) as exc:
                logger.error("Failed to write adapter config %s: %s", key, exc)
                report.failed[key] = str(exc)
                continue
            self._snapshot.put(record)
            report.written.append(key)
            logger.info("Loaded remote adapter config: %s", key)

        for key in sorted(changes.removed):
            try:
                self._applier.remove(key)
            except (OSError, UnsafePathError) as exc:
                logger.error("Failed to delete adapter config %s: %s", key, exc)
                report.failed[key] = str(exc)
                continue
            self._snapshot.remove(key)
            report.removed.append(key)
            logger.info("Deleted remote adapter config: %s", key)
        return report

    def reconcile(self) -> ApplyReport:
        """Run one tick: scan, diff, fetch, apply."""
        try:
            changes = self.compute_changes()
        except RemoteStoreError as exc:
            logger.error("Failed to scan remote adapter configs: %s", exc)
            return ApplyReport()
        if changes is None:
            return ApplyReport()
        return self.apply(changes)
