"""Shared test fixtures for confmirror."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from confmirror.config import Settings
from confmirror.database import create_engine
from confmirror.exceptions import RemoteStoreError
from confmirror.filesystem.applier import FilesystemApplier
from confmirror.models.base import Base
from confmirror.models.record import ConfigRecord
from confmirror.services.adapter_config_service import AdapterConfigReconciler
from confmirror.services.gateway import RemoteStoreGateway
from confmirror.services.snapshot_service import SnapshotStore

if TYPE_CHECKING:
    from collections.abc import Generator, Iterable
    from pathlib import Path

    from sqlalchemy.engine import Engine


class FakeGateway:
    """In-memory stand-in for RemoteStoreGateway with failure injection."""

    def __init__(self) -> None:
        self.rows: dict[int, ConfigRecord] = {}
        self.main: ConfigRecord | None = None
        self.fail_metadata = False
        self.fail_main = False
        self.failing_ids: set[int] = set()
        self.metadata_queries = 0
        self.content_queries: list[set[int]] = []

    def put(
        self, config_id: int, category: str, name: str, content: str, modified_time: int
    ) -> ConfigRecord:
        record = ConfigRecord(
            id=config_id,
            category=category,
            name=name,
            modified_time=modified_time,
            content=content,
        )
        self.rows[config_id] = record
        return record

    def delete(self, config_id: int) -> None:
        del self.rows[config_id]

    def put_main(self, content: str, modified_time: int) -> ConfigRecord:
        self.main = ConfigRecord(
            id=1,
            category=None,
            name="application.yml",
            modified_time=modified_time,
            content=content,
        )
        return self.main

    def query_metadata(self) -> list[ConfigRecord]:
        self.metadata_queries += 1
        if self.fail_metadata:
            raise RemoteStoreError("metadata scan failed")
        return [record.with_content(None) for record in self.rows.values()]

    def query_content(self, ids: Iterable[int]) -> list[ConfigRecord]:
        id_set = set(ids)
        self.content_queries.append(id_set)
        if id_set & self.failing_ids:
            raise RemoteStoreError(f"content fetch failed for {sorted(id_set)}")
        return [self.rows[i] for i in sorted(id_set) if i in self.rows]

    def query_main_config(self) -> ConfigRecord | None:
        if self.fail_main:
            raise RemoteStoreError("main config query failed")
        return self.main


@pytest.fixture
def conf_root(tmp_path: Path) -> Path:
    """Create an empty conf directory."""
    root = tmp_path / "conf"
    root.mkdir()
    return root


@pytest.fixture
def applier(conf_root: Path) -> FilesystemApplier:
    return FilesystemApplier(conf_root)


@pytest.fixture
def snapshot() -> SnapshotStore:
    return SnapshotStore()


@pytest.fixture
def fake_gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def reconciler(
    fake_gateway: FakeGateway, snapshot: SnapshotStore, applier: FilesystemApplier
) -> AdapterConfigReconciler:
    return AdapterConfigReconciler(fake_gateway, snapshot, applier)  # type: ignore[arg-type]


@pytest.fixture
def test_settings(conf_root: Path, tmp_path: Path) -> Settings:
    """Create test settings with temporary paths."""
    db_path = tmp_path / "test.db"
    return Settings(
        _env_file=None,
        debug=False,
        database_url=f"sqlite:///{db_path}",
        conf_dir=conf_root,
        initial_delay_seconds=0,
        scan_interval_seconds=0.05,
    )


@pytest.fixture
def db_engine(test_settings: Settings) -> Generator[Engine]:
    """Create a test database engine with the config tables in place."""
    engine = create_engine(test_settings)
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def gateway(db_engine: Engine) -> Generator[RemoteStoreGateway]:
    gw = RemoteStoreGateway(db_engine)
    yield gw
    gw.close()
