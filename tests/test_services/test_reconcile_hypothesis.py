"""Property-based tests for adapter config reconciliation invariants."""

from __future__ import annotations

import string
import tempfile
from pathlib import Path

from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from confmirror.filesystem.applier import FilesystemApplier
from confmirror.models.record import ConfigRecord
from confmirror.services.adapter_config_service import AdapterConfigReconciler
from confmirror.services.snapshot_service import SnapshotStore, diff_snapshot
from tests.conftest import FakeGateway

PROPERTY_SETTINGS = settings(
    max_examples=150,
    deadline=None,
    suppress_health_check=[HealthCheck.too_slow],
)

_SEGMENT = st.text(alphabet=string.ascii_lowercase + string.digits, min_size=1, max_size=6)
_CATEGORY = st.sampled_from(["rdb", "es", "hbase", "kudu"])
_NAME = st.builds(lambda stem, ext: f"{stem}.{ext}", _SEGMENT, st.sampled_from(["yml", "yaml"]))
_KEY = st.tuples(_CATEGORY, _NAME)
_CONTENT = st.text(alphabet=string.ascii_letters + string.digits + ": \n", max_size=40)

# One remote edit: set (category, name) to content, or delete it.
_MUTATION = st.one_of(
    st.tuples(st.just("put"), _KEY, _CONTENT),
    st.tuples(st.just("delete"), _KEY, st.just("")),
)
# A batch of edits followed by one tick.
_HISTORY = st.lists(st.lists(_MUTATION, max_size=5), min_size=1, max_size=6)


class _RemoteModel:
    """Drives a FakeGateway the way a remote editor would."""

    def __init__(self, gateway: FakeGateway) -> None:
        self.gateway = gateway
        self.ids: dict[tuple[str, str], int] = {}
        self.next_id = 1
        self.clock = 1000

    def apply(self, op: str, key: tuple[str, str], content: str) -> None:
        self.clock += 1
        if op == "put":
            config_id = self.ids.get(key)
            if config_id is None:
                config_id = self.next_id
                self.next_id += 1
                self.ids[key] = config_id
            self.gateway.put(config_id, key[0], key[1], content, self.clock)
        elif key in self.ids:
            self.gateway.delete(self.ids.pop(key))

    def expected_files(self) -> dict[str, str]:
        return {record.key: record.content or "" for record in self.gateway.rows.values()}


def _local_files(root: Path) -> dict[str, str]:
    return {
        path.relative_to(root).as_posix(): path.read_text(encoding="utf-8")
        for path in root.rglob("*")
        if path.is_file()
    }


@PROPERTY_SETTINGS
@given(history=_HISTORY)
def test_local_tree_converges_to_remote_state(
    history: list[list[tuple[str, tuple[str, str], str]]],
) -> None:
    with tempfile.TemporaryDirectory() as tmp:
        root = Path(tmp)
        gateway = FakeGateway()
        remote = _RemoteModel(gateway)
        snapshot = SnapshotStore()
        applier = FilesystemApplier(root)
        reconciler = AdapterConfigReconciler(gateway, snapshot, applier)  # type: ignore[arg-type]

        for batch in history:
            for op, key, content in batch:
                remote.apply(op, key, content)
            reconciler.reconcile()

        expected = remote.expected_files()
        assert _local_files(root) == expected
        assert snapshot.keys() == set(expected)

        # Idempotence: another tick with no remote change is a no-op.
        before = snapshot.items()
        report = reconciler.reconcile()
        assert not report.has_changes
        assert snapshot.items() == before
        assert _local_files(root) == expected


_RECORDS = st.dictionaries(
    keys=_KEY,
    values=st.tuples(st.integers(min_value=1, max_value=50), st.integers(0, 5)),
    max_size=8,
)


def _as_records(entries: dict[tuple[str, str], tuple[int, int]]) -> dict[str, ConfigRecord]:
    records = {}
    for (category, name), (config_id, modified_time) in entries.items():
        record = ConfigRecord(
            id=config_id, category=category, name=name, modified_time=modified_time
        )
        records[record.key] = record
    return records


@PROPERTY_SETTINGS
@given(snapshot_entries=_RECORDS, remote_entries=_RECORDS)
def test_diff_partitions_keys(
    snapshot_entries: dict[tuple[str, str], tuple[int, int]],
    remote_entries: dict[tuple[str, str], tuple[int, int]],
) -> None:
    snapshot = _as_records(snapshot_entries)
    remote = _as_records(remote_entries)

    diff = diff_snapshot(snapshot, remote)

    assert diff.removed_keys == set(snapshot) - set(remote)
    expected_changed = {
        record.id
        for key, record in remote.items()
        if key not in snapshot or snapshot[key].modified_time != record.modified_time
    }
    assert diff.changed_ids == expected_changed
    assert diff_snapshot(remote, remote).is_empty()
