"""Snapshot store and the diff that drives adapter config reconciliation."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from confmirror.models.record import ConfigRecord


@dataclass
class SnapshotDiff:
    """What a metadata scan says must change locally."""

    changed_ids: set[int] = field(default_factory=set)
    removed_keys: set[str] = field(default_factory=set)

    def is_empty(self) -> bool:
        return not self.changed_ids and not self.removed_keys


class SnapshotStore:
    """Last state successfully written to disk, keyed by ``category/name``.

    Only the adapter reconciler mutates it. Readers on other threads get
    copies, so iterating never races a concurrent put or remove.
    """

    def __init__(self) -> None:
        self._entries: dict[str, ConfigRecord] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> ConfigRecord | None:
        with self._lock:
            return self._entries.get(key)

    def put(self, record: ConfigRecord) -> None:
        with self._lock:
            self._entries[record.key] = record

    def remove(self, key: str) -> ConfigRecord | None:
        with self._lock:
            return self._entries.pop(key, None)

    def keys(self) -> set[str]:
        with self._lock:
            return set(self._entries)

    def items(self) -> dict[str, ConfigRecord]:
        with self._lock:
            return dict(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


def index_by_key(records: Iterable[ConfigRecord]) -> dict[str, ConfigRecord]:
    """Map records by composite key; a later duplicate key replaces an earlier one."""
    return {record.key: record for record in records}


def diff_snapshot(
    snapshot: Mapping[str, ConfigRecord],
    remote: Mapping[str, ConfigRecord],
) -> SnapshotDiff:
    """Compare remote metadata against the snapshot.

    A remote key missing from the snapshot, or present with a different
    ``modified_time``, marks its id as changed. Any difference counts, not
    only a newer timestamp. A snapshot key absent from the remote scan is
    removed.
    """
    diff = SnapshotDiff()
    for key, remote_meta in remote.items():
        current = snapshot.get(key)
        if current is None or current.modified_time != remote_meta.modified_time:
            diff.changed_ids.add(remote_meta.id)
    diff.removed_keys = {key for key in snapshot if key not in remote}
    return diff
