"""
Database Abstraction Layer.

Manages the two persistence targets selected by ``STORAGE_MODE``:

- **Supabase (hosted PostgreSQL)**: the production store, reached through
  the ``supabase`` client and its PostgREST query builder.

- **JSON files (local)**: a development fallback that keeps one JSON array
  per table under ``LOCALSTORAGE_PATH``.  Tables are loaded lazily,
  mutated in memory and flushed atomically after every write when
  persistence is enabled.

Data access is performed through the Repository pattern.  This module only
manages the raw *connections* and files; it contains no query logic.

Usage (dependency injection at app startup)::

    from app.database import DatabaseManager, JsonFileStore
    from app.logger import StructuredLogger

    db = DatabaseManager(
        supabase_url=config.SUPABASE_URL,
        supabase_key=config.supabase_key,
        logger=StructuredLogger(name="database"),
    )
    store = JsonFileStore(
        data_dir=config.LOCALSTORAGE_PATH,
        persist=config.LOCALSTORAGE_PERSIST,
        logger=StructuredLogger(name="storage"),
    )
"""

from __future__ import annotations

import copy
import json
import os
import tempfile
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional

from supabase import create_client, Client as SupabaseClient

from app.logger import StructuredLogger
from app.utils.string_helpers import JsonValue

Row = dict[str, JsonValue]


class StorageError(RuntimeError):
    """Raised when a storage target cannot be read or written."""


class DatabaseManager:
    """Owns the Supabase client.

    When ``supabase_url`` or ``supabase_key`` is empty the client is
    **not** created.  The ``supabase`` property then raises
    ``RuntimeError``, which the Supabase storage backend converts into a
    repository error result like any other database fault.

    Parameters
    ----------
    supabase_url:
        The Supabase project URL (e.g. ``https://xyz.supabase.co``).
    supabase_key:
        The service-role key (or anon key) used by the server.
    logger:
        A ``StructuredLogger`` instance for structured JSON log output.
    """

    def __init__(
        self,
        supabase_url: str,
        supabase_key: str,
        logger: StructuredLogger,
    ) -> None:
        self._logger: StructuredLogger = logger
        self._supabase: Optional[SupabaseClient] = None

        if supabase_url and supabase_key:
            try:
                self._supabase = create_client(supabase_url, supabase_key)
                self._logger.info("Supabase client initialized.")
            except (ValueError, TypeError) as exc:
                self._logger.warning(
                    "Supabase credential format error: %s. Database storage unavailable.",
                    exc,
                )
            except Exception as exc:
                self._logger.error(
                    "Unexpected Supabase initialization failure: %s.",
                    exc,
                    exc_info=True,
                )
        else:
            self._logger.warning(
                "Supabase credentials not configured; database storage unavailable."
            )

    @property
    def supabase(self) -> SupabaseClient:
        """Return the initialised Supabase client.

        Raises
        ------
        RuntimeError
            If the client was not initialised.
        """
        if self._supabase is None:
            raise RuntimeError(
                "Supabase client is not initialised. "
                "Set SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY."
            )
        return self._supabase

    def close(self) -> None:
        """Release the client reference.  Safe to call multiple times."""
        if self._supabase is not None:
            self._supabase = None
            self._logger.info("Supabase client released.")


class JsonFileStore:
    """In-memory tables mirrored to ``<data_dir>/<table>.json``.

    All access to table contents must happen while holding
    :pyattr:`write_lock`; the JSON storage backend does this for every
    operation.

    Parameters
    ----------
    data_dir:
        Directory holding the table files.  Created on first write.
    persist:
        When ``False`` nothing touches the disk (tests, throwaway demos).
    logger:
        A ``StructuredLogger`` instance for structured JSON log output.
    """

    def __init__(
        self,
        data_dir: Path,
        persist: bool,
        logger: StructuredLogger,
    ) -> None:
        self._data_dir: Path = Path(data_dir)
        self._persist: bool = persist
        self._logger: StructuredLogger = logger
        self._tables: dict[str, list[Row]] = {}
        self._dirty: set[str] = set()
        self._write_lock: threading.RLock = threading.RLock()
        self._in_batch: bool = False

        self._logger.info(
            "JSON file storage at %s (persist=%s)", self._data_dir, self._persist
        )

    # ------------------------------------------------------------------
    # Public properties
    # ------------------------------------------------------------------

    @property
    def write_lock(self) -> threading.RLock:
        """Lock guarding every read and write of table contents."""
        return self._write_lock

    @property
    def in_batch(self) -> bool:
        """``True`` when a :meth:`batch_write` context is active."""
        return self._in_batch

    @property
    def persist(self) -> bool:
        return self._persist

    # ------------------------------------------------------------------
    # Table access
    # ------------------------------------------------------------------

    def table(self, name: str) -> list[Row]:
        """Return the mutable row list for *name*, loading it on first use."""
        with self._write_lock:
            if name not in self._tables:
                self._tables[name] = self._load(name)
            return self._tables[name]

    def commit(self, name: str) -> None:
        """Flush *name* to disk unless a batch is active or persistence is off."""
        with self._write_lock:
            self._dirty.add(name)
            if not self._in_batch:
                self._flush_dirty()

    @contextmanager
    def mutate(self, name: str) -> Generator[list[Row], None, None]:
        """Yield the rows of *name* for in-place changes, then commit them.

        When the body or the flush raises, the table is restored to its
        state at entry and the error re-raised.  Inside :meth:`batch_write`
        the enclosing batch owns rollback and flushing.
        """
        with self._write_lock:
            rows = self.table(name)
            if self._in_batch:
                yield rows
                self._dirty.add(name)
                return

            snapshot = copy.deepcopy(rows)
            try:
                yield rows
                self.commit(name)
            except Exception:
                rows[:] = snapshot
                self._dirty.discard(name)
                raise

    @contextmanager
    def batch_write(self) -> Generator[None, None, None]:
        """Context manager that defers flushes for bulk operations.

        On normal exit every touched table is flushed once.  On exception
        the in-memory tables are restored to their state at entry and the
        error re-raised.

        Example::

            with store.batch_write():
                for row in rows:
                    backend.insert("transactions", row)
            # single flush happens here
        """
        with self._write_lock:
            if self._in_batch:
                yield
                return

            snapshot = copy.deepcopy(self._tables)
            self._in_batch = True
            try:
                yield
                self._in_batch = False
                self._flush_dirty()
                self._logger.debug("Batch write committed.")
            except Exception:
                self._tables = snapshot
                self._dirty.clear()
                self._logger.error(
                    "Batch write rolled back due to exception.", exc_info=True,
                )
                raise
            finally:
                self._in_batch = False

    def close(self) -> None:
        """Flush pending writes.  Safe to call multiple times."""
        with self._write_lock:
            self._flush_dirty()

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _path(self, name: str) -> Path:
        return self._data_dir / f"{name}.json"

    def _load(self, name: str) -> list[Row]:
        """Read a table file, treating a missing file as an empty table.

        Raises
        ------
        StorageError
            If the file exists but is unreadable or not a JSON array.
        """
        if not self._persist:
            return []
        path = self._path(name)
        if not path.exists():
            return []
        try:
            with path.open("r", encoding="utf-8") as handle:
                rows = json.load(handle)
        except (OSError, json.JSONDecodeError) as exc:
            msg = f"Cannot read local table '{name}' at '{path}': {exc}"
            self._logger.error(msg)
            raise StorageError(msg) from exc
        if not isinstance(rows, list):
            raise StorageError(f"Local table '{name}' at '{path}' is not a JSON array")
        self._logger.info("Loaded %d rows from %s", len(rows), path)
        return rows

    def _flush_dirty(self) -> None:
        if not self._persist:
            self._dirty.clear()
            return
        for name in sorted(self._dirty):
            self._write_atomic(name, self._tables.get(name, []))
        self._dirty.clear()

    def _write_atomic(self, name: str, rows: list[Row]) -> None:
        """Write through a temp file and ``os.replace`` so readers never see half a file."""
        path = self._path(name)
        try:
            self._data_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{name}.", suffix=".tmp", dir=str(self._data_dir)
            )
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(rows, handle, ensure_ascii=False, indent=2, default=str)
            os.replace(tmp_name, path)
        except OSError as exc:
            msg = f"Cannot write local table '{name}' to '{path}': {exc}"
            self._logger.error(msg)
            raise StorageError(msg) from exc
