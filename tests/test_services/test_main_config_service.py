"""Tests for the main config reconciler."""

from __future__ import annotations

from typing import TYPE_CHECKING
from unittest.mock import patch

import pytest

from confmirror.services.main_config_service import NEVER_APPLIED, MainConfigReconciler

if TYPE_CHECKING:
    from pathlib import Path

    from confmirror.filesystem.applier import FilesystemApplier
    from tests.conftest import FakeGateway


@pytest.fixture
def main_reconciler(fake_gateway: FakeGateway, applier: FilesystemApplier) -> MainConfigReconciler:
    return MainConfigReconciler(fake_gateway, applier)  # type: ignore[arg-type]


class TestMainConfigReconciler:
    def test_absent_record_is_a_no_op(
        self, main_reconciler: MainConfigReconciler, conf_root: Path
    ) -> None:
        assert main_reconciler.reconcile() is False
        assert main_reconciler.last_applied_timestamp == NEVER_APPLIED
        assert not (conf_root / "application.yml").exists()

    def test_first_observation_writes_file(
        self, main_reconciler: MainConfigReconciler, fake_gateway: FakeGateway, conf_root: Path
    ) -> None:
        fake_gateway.put_main("server: 1", 1000)
        assert main_reconciler.reconcile() is True
        assert (conf_root / "application.yml").read_text() == "server: 1"
        assert main_reconciler.last_applied_timestamp == 1000

    def test_unchanged_timestamp_is_not_rewritten(
        self,
        main_reconciler: MainConfigReconciler,
        fake_gateway: FakeGateway,
        applier: FilesystemApplier,
    ) -> None:
        fake_gateway.put_main("server: 1", 1000)
        main_reconciler.reconcile()
        with patch.object(applier, "write") as write:
            assert main_reconciler.reconcile() is False
        write.assert_not_called()

    def test_clock_rollback_counts_as_change(
        self, main_reconciler: MainConfigReconciler, fake_gateway: FakeGateway, conf_root: Path
    ) -> None:
        fake_gateway.put_main("new", 2000)
        main_reconciler.reconcile()
        fake_gateway.put_main("rolled back", 1500)
        assert main_reconciler.reconcile() is True
        assert (conf_root / "application.yml").read_text() == "rolled back"
        assert main_reconciler.last_applied_timestamp == 1500

    def test_failed_write_does_not_advance_timestamp(
        self,
        main_reconciler: MainConfigReconciler,
        fake_gateway: FakeGateway,
        applier: FilesystemApplier,
        conf_root: Path,
    ) -> None:
        fake_gateway.put_main("server: 1", 1000)
        with patch.object(applier, "write", side_effect=PermissionError("denied")):
            assert main_reconciler.reconcile() is False
        assert main_reconciler.last_applied_timestamp == NEVER_APPLIED

        assert main_reconciler.reconcile() is True
        assert (conf_root / "application.yml").read_text() == "server: 1"

    def test_query_failure_is_logged_and_ignored(
        self,
        main_reconciler: MainConfigReconciler,
        fake_gateway: FakeGateway,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        fake_gateway.put_main("server: 1", 1000)
        fake_gateway.fail_main = True
        assert main_reconciler.reconcile() is False
        assert main_reconciler.last_applied_timestamp == NEVER_APPLIED
        assert "main config query failed" in caplog.text

    def test_custom_filename(
        self, fake_gateway: FakeGateway, applier: FilesystemApplier, conf_root: Path
    ) -> None:
        reconciler = MainConfigReconciler(
            fake_gateway,  # type: ignore[arg-type]
            applier,
            filename="app.properties",
        )
        fake_gateway.put_main("a=b", 1)
        reconciler.reconcile()
        assert (conf_root / "app.properties").read_text() == "a=b"
