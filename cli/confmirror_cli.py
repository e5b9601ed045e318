"""Operator CLI for confmirror: run the monitor and manage remote config records."""

from __future__ import annotations

import argparse
import signal
import sys
import threading
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml
from sqlalchemy.exc import SQLAlchemyError

from confmirror.config import Settings
from confmirror.database import create_engine
from confmirror.exceptions import RemoteStoreError
from confmirror.filesystem.applier import validate_key_part
from confmirror.main import ConfigMonitor, create_monitor, ensure_sqlite_dir
from confmirror.models.base import Base
from confmirror.services.datetime_service import from_epoch_millis
from confmirror.services.gateway import RemoteStoreGateway

if TYPE_CHECKING:
    from confmirror.models.record import ConfigRecord

YAML_SUFFIXES = (".yml", ".yaml")


def read_config_file(path: Path) -> str:
    """Read a config document, rejecting YAML files that do not parse."""
    content = path.read_text(encoding="utf-8")
    if path.suffix.lower() in YAML_SUFFIXES:
        try:
            yaml.safe_load(content)
        except yaml.YAMLError as exc:
            raise ValueError(f"{path} is not valid YAML: {exc}") from exc
    return content


def format_status(records: list[ConfigRecord]) -> str:
    """Render remote adapter metadata as a YAML document grouped by category."""
    grouped: dict[str, list[dict[str, Any]]] = {}
    for record in sorted(records, key=lambda r: (r.category or "", r.name)):
        grouped.setdefault(record.category or "", []).append(
            {
                "id": record.id,
                "name": record.name,
                "modified_time": from_epoch_millis(record.modified_time).isoformat(),
            }
        )
    return yaml.safe_dump({"adapter_configs": grouped}, sort_keys=False)


def _gateway(settings: Settings) -> RemoteStoreGateway:
    ensure_sqlite_dir(settings.database_url)
    return RemoteStoreGateway(
        create_engine(settings),
        main_config_id=settings.main_config_id,
        timezone=settings.database_timezone,
    )


def _run(monitor: ConfigMonitor) -> None:
    stopped = threading.Event()

    def _handle_signal(signum: int, _frame: object) -> None:
        print(f"Received signal {signum}, shutting down")
        stopped.set()

    signal.signal(signal.SIGINT, _handle_signal)
    signal.signal(signal.SIGTERM, _handle_signal)
    monitor.start()
    try:
        while not stopped.wait(1.0):
            pass
    finally:
        monitor.destroy()


def _once(monitor: ConfigMonitor) -> int:
    try:
        main_written, report = monitor.load_once()
    finally:
        monitor.destroy()
    print(f"Conf root: {monitor.conf_root}")
    print(f"  Main config rewritten: {'yes' if main_written else 'no'}")
    print(f"  Written:  {len(report.written)}")
    print(f"  Removed:  {len(report.removed)}")
    print(f"  Failed:   {len(report.failed)}")
    for key in report.written:
        print(f"    + {key}")
    for key in report.removed:
        print(f"    - {key}")
    for key, reason in report.failed.items():
        print(f"    ! {key} ({reason})")
    return 1 if report.failed else 0


def main(argv: list[str] | None = None) -> int:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="confmirror",
        description="Mirror configuration records from a database onto the local filesystem",
    )
    parser.add_argument("--database-url", help="Database URL (default: DATABASE_URL setting)")
    parser.add_argument("--conf-dir", help="Directory to mirror into (default: CONF_DIR setting)")

    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser("run", help="Poll the database and mirror changes until stopped")
    subparsers.add_parser("once", help="Run one reconciliation pass")
    subparsers.add_parser("status", help="List remote adapter configs")
    subparsers.add_parser("init-db", help="Create the config tables")

    publish = subparsers.add_parser("publish", help="Create or replace an adapter config")
    publish.add_argument("file", type=Path, help="Local file to upload")
    publish.add_argument("--category", "-c", required=True, help="Adapter category")
    publish.add_argument("--name", "-n", help="Record name (default: file name)")

    publish_main = subparsers.add_parser("publish-main", help="Create or replace the main config")
    publish_main.add_argument("file", type=Path, help="Local file to upload")

    unpublish = subparsers.add_parser("unpublish", help="Delete an adapter config")
    unpublish.add_argument("--category", "-c", required=True, help="Adapter category")
    unpublish.add_argument("--name", "-n", required=True, help="Record name")

    args = parser.parse_args(argv)
    overrides: dict[str, Any] = {}
    if args.database_url:
        overrides["database_url"] = args.database_url
    if args.conf_dir:
        overrides["conf_dir"] = Path(args.conf_dir)
    settings = Settings(**overrides)

    if args.command in ("run", "once"):
        try:
            monitor = create_monitor(settings)
        except (OSError, ValueError) as exc:
            print(f"Error: {exc}")
            return 1
        if args.command == "run":
            _run(monitor)
            return 0
        return _once(monitor)

    if args.command is None:
        parser.print_help()
        return 0

    gateway = _gateway(settings)
    try:
        if args.command == "init-db":
            Base.metadata.create_all(gateway.engine)
            print("Created config tables")
        elif args.command == "status":
            print(format_status(gateway.query_metadata()), end="")
        elif args.command == "publish":
            name = args.name or args.file.name
            validate_key_part(args.category, "category")
            validate_key_part(name, "name")
            config_id = gateway.upsert_adapter_config(
                args.category, name, read_config_file(args.file)
            )
            print(f"Published {args.category}/{name} (id={config_id})")
        elif args.command == "publish-main":
            gateway.upsert_main_config(args.file.name, read_config_file(args.file))
            print(f"Published main config from {args.file}")
        elif args.command == "unpublish":
            if gateway.delete_adapter_config(args.category, args.name):
                print(f"Deleted {args.category}/{args.name}")
            else:
                print(f"Error: {args.category}/{args.name} not found")
                return 1
    except (OSError, RemoteStoreError, SQLAlchemyError, ValueError) as exc:
        print(f"Error: {exc}")
        return 1
    finally:
        gateway.dispose()
    return 0


if __name__ == "__main__":
    sys.exit(main())
