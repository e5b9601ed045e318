"""Remote store gateway: the single shared connection to the config database."""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Any, TypeVar

from sqlalchemy import delete, insert, select, update
from sqlalchemy.exc import SQLAlchemyError

from confmirror.exceptions import RemoteConnectionError, RemoteStoreError
from confmirror.models.config import AdapterConfig, MainConfig
from confmirror.models.record import ConfigRecord
from confmirror.services.datetime_service import from_epoch_millis, now_millis, to_epoch_millis

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from sqlalchemy.engine import Connection, Engine, Row

logger = logging.getLogger(__name__)

T = TypeVar("T")

_adapter = AdapterConfig.__table__
_main = MainConfig.__table__


class RemoteStoreGateway:
    """Lazily connected, lock-guarded access to the remote config tables.

    Both scan tasks share one connection. The lock covers the
    reconnect-if-closed check and every statement run on the connection,
    since a DB-API connection must not be used from two threads at once.
    The gateway never retries; a failed call raises ``RemoteStoreError``
    and drops the connection so the next call reconnects.
    """

    def __init__(
        self,
        engine: Engine,
        *,
        main_config_id: int = 1,
        timezone: str = "UTC",
    ) -> None:
        self._engine = engine
        self._main_config_id = main_config_id
        self._timezone = timezone
        self._conn: Connection | None = None
        self._lock = threading.RLock()

    @property
    def engine(self) -> Engine:
        return self._engine

    def connect(self) -> Connection:
        """Return the shared connection, opening a new one if absent or closed."""
        with self._lock:
            conn = self._conn
            if conn is None or conn.closed or conn.invalidated:
                if conn is not None:
                    logger.info("Remote store connection closed, reconnecting")
                try:
                    conn = self._engine.connect()
                except SQLAlchemyError as exc:
                    self._conn = None
                    raise RemoteConnectionError(f"Cannot connect to remote store: {exc}") from exc
                self._conn = conn
            return conn

    def close(self) -> None:
        """Release the shared connection. Safe to call repeatedly."""
        with self._lock:
            conn, self._conn = self._conn, None
            if conn is not None and not conn.closed:
                try:
                    conn.close()
                except SQLAlchemyError:
                    logger.exception("Failed to close remote store connection")

    def dispose(self) -> None:
        """Release the connection and the engine's pool."""
        self.close()
        self._engine.dispose()

    def _discard(self) -> None:
        conn, self._conn = self._conn, None
        if conn is not None:
            try:
                conn.invalidate()
            except SQLAlchemyError:
                logger.debug("Ignoring error while invalidating connection", exc_info=True)

    def _run(self, work: Callable[[Connection], T], *, commit: bool = False) -> T:
        with self._lock:
            conn = self.connect()
            try:
                result = work(conn)
                if commit:
                    conn.commit()
                else:
                    # End the implicit transaction so the next scan sees fresh data.
                    conn.rollback()
            except SQLAlchemyError as exc:
                self._discard()
                raise RemoteStoreError(f"Remote store query failed: {exc}") from exc
            return result

    def _to_millis(self, value: Any) -> int:
        try:
            return to_epoch_millis(value, self._timezone)
        except (AttributeError, TypeError, ValueError) as exc:
            raise RemoteStoreError(f"Malformed modified_time {value!r}") from exc

    def _adapter_record(self, row: Row[Any], *, with_content: bool) -> ConfigRecord:
        return ConfigRecord(
            id=int(row.id),
            category=row.category,
            name=row.name,
            modified_time=self._to_millis(row.modified_time),
            content=row.content if with_content else None,
        )

    # -- read queries --

    def query_metadata(self) -> list[ConfigRecord]:
        """Return every adapter config row without its content."""
        stmt = select(
            _adapter.c.id, _adapter.c.category, _adapter.c.name, _adapter.c.modified_time
        )
        rows = self._run(lambda conn: conn.execute(stmt).all())
        return [self._adapter_record(row, with_content=False) for row in rows]

    def query_content(self, ids: Iterable[int]) -> list[ConfigRecord]:
        """Return full adapter config rows for the given ids.

        Ids that no longer exist are simply absent from the result.
        """
        id_list = sorted(set(ids))
        if not id_list:
            return []
        stmt = select(
            _adapter.c.id,
            _adapter.c.category,
            _adapter.c.name,
            _adapter.c.content,
            _adapter.c.modified_time,
        ).where(_adapter.c.id.in_(id_list))
        rows = self._run(lambda conn: conn.execute(stmt).all())
        return [self._adapter_record(row, with_content=True) for row in rows]

    def query_main_config(self) -> ConfigRecord | None:
        """Return the well-known main config row, or None if it does not exist."""
        stmt = select(_main.c.name, _main.c.content, _main.c.modified_time).where(
            _main.c.id == self._main_config_id
        )
        row = self._run(lambda conn: conn.execute(stmt).first())
        if row is None:
            return None
        return ConfigRecord(
            id=self._main_config_id,
            category=None,
            name=row.name,
            modified_time=self._to_millis(row.modified_time),
            content=row.content,
        )

    # -- write helpers for operators --

    def upsert_adapter_config(self, category: str, name: str, content: str) -> int:
        """Create or replace an adapter config, stamping it with the current time.

        Returns the row id.
        """
        stamp = from_epoch_millis(now_millis(), self._timezone)

        def work(conn: Connection) -> int:
            existing = conn.execute(
                select(_adapter.c.id).where(
                    _adapter.c.category == category, _adapter.c.name == name
                )
            ).scalar()
            if existing is not None:
                conn.execute(
                    update(_adapter)
                    .where(_adapter.c.id == existing)
                    .values(content=content, modified_time=stamp)
                )
                return int(existing)
            result = conn.execute(
                insert(_adapter).values(
                    category=category, name=name, content=content, modified_time=stamp
                )
            )
            return int(result.inserted_primary_key[0])

        return self._run(work, commit=True)

    def delete_adapter_config(self, category: str, name: str) -> bool:
        """Delete an adapter config. Returns True if a row was removed."""
        stmt = delete(_adapter).where(_adapter.c.category == category, _adapter.c.name == name)
        count = self._run(lambda conn: conn.execute(stmt).rowcount, commit=True)
        return bool(count)

    def upsert_main_config(self, name: str, content: str) -> None:
        """Create or replace the main config row, stamping it with the current time."""
        stamp = from_epoch_millis(now_millis(), self._timezone)
        main_id = self._main_config_id

        def work(conn: Connection) -> None:
            result = conn.execute(
                update(_main)
                .where(_main.c.id == main_id)
                .values(name=name, content=content, modified_time=stamp)
            )
            if not result.rowcount:
                conn.execute(
                    insert(_main).values(
                        id=main_id, name=name, content=content, modified_time=stamp
                    )
                )

        self._run(work, commit=True)
