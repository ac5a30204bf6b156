from __future__ import annotations

import logging
import os
import tempfile
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional

import pandas as pd

from clinic import config
from clinic.errors import NotFound, StoreUnavailable

logger = logging.getLogger(__name__)


class Table(str, Enum):
    # declaration order is the global lock order
    APPOINTMENT = "appointment"
    AVAILABILITY = "availability"
    APPOINTMENT_RECORD = "appointment_record"
    PATIENT = "patient"
    MEDICINE = "medicine"
    REPLENISHMENT = "replenishment"
    BILL = "bill"


TABLE_FILES: Dict[Table, str] = {
    Table.APPOINTMENT: config.APPOINTMENT_CSV,
    Table.AVAILABILITY: config.AVAILABILITY_CSV,
    Table.APPOINTMENT_RECORD: config.APPOINTMENT_RECORD_CSV,
    Table.PATIENT: config.PATIENT_CSV,
    Table.MEDICINE: config.MEDICINE_CSV,
    Table.REPLENISHMENT: config.REPLENISHMENT_CSV,
    Table.BILL: config.BILL_CSV,
}

TABLE_COLUMNS: Dict[Table, List[str]] = {
    Table.APPOINTMENT: ["appointment_id", "doctor_id", "patient_id", "date", "time_slot", "status"],
    Table.AVAILABILITY: ["doctor_id", "date", "slot", "status", "appointment_id"],
    Table.APPOINTMENT_RECORD: [
        "appointment_id", "diagnosis", "medicine", "quantity", "prescription_status",
        "treatment_plan", "date", "service_type", "notes",
    ],
    Table.PATIENT: ["patient_id", "name", "gender", "dob", "contact", "email", "blood_type", "past_treatments"],
    Table.MEDICINE: ["name", "stock", "low_stock_threshold"],
    Table.REPLENISHMENT: ["request_id", "medicine", "quantity", "status"],
    Table.BILL: ["appointment_id", "amount", "status", "feedback"],
}

# Primary key column per table. DoctorAvailability has a composite key and no
# single-field lookup.
TABLE_KEYS: Dict[Table, Optional[str]] = {
    Table.APPOINTMENT: "appointment_id",
    Table.AVAILABILITY: None,
    Table.APPOINTMENT_RECORD: "appointment_id",
    Table.PATIENT: "patient_id",
    Table.MEDICINE: "name",
    Table.REPLENISHMENT: "request_id",
    Table.BILL: "appointment_id",
}

_LOCK_ORDER = {t: i for i, t in enumerate(Table)}

Row = Dict[str, str]


@dataclass
class Transaction:
    """
    Staging area for one read-modify-write cycle. Tables are loaded fresh and
    nothing reaches disk until the owning `RecordStore.transaction` block exits
    cleanly.
    """
    store: "RecordStore"
    tables: List[Table]
    staged: Dict[Table, List[Row]] = field(default_factory=dict)

    def load(self, table: Table) -> List[Row]:
        self._check(table)
        if table in self.staged:
            return [dict(r) for r in self.staged[table]]
        return self.store._read(table)

    def stage(self, table: Table, records: Iterable[Row]) -> None:
        self._check(table)
        self.staged[table] = [dict(r) for r in records]

    def _check(self, table: Table) -> None:
        if table not in self.tables:
            raise RuntimeError(f"table {table.value} is not locked by this transaction")


class RecordStore:
    """Flat CSV tables with per-table locks and replace-on-write commits."""

    def __init__(self, data_dir: Path | str = config.DATA_DIR):
        self.data_dir = Path(data_dir)
        self._locks: Dict[Table, threading.RLock] = {t: threading.RLock() for t in Table}

    def path(self, table: Table) -> Path:
        return self.data_dir / TABLE_FILES[table]

    # ---------- provisioning ----------
    def provision(self) -> List[Table]:
        """Create missing tables (header only). Existing tables are never touched."""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        created: List[Table] = []
        for table in Table:
            with self._locks[table]:
                if not self.path(table).exists():
                    self._write_many({table: []})
                    created.append(table)
        if created:
            logger.info(f"Provisioned tables in {self.data_dir}: {', '.join(t.value for t in created)}")
        return created

    # ---------- public API ----------
    def load_all(self, table: Table) -> List[Row]:
        with self._locks[table]:
            return self._read(table)

    def save_all(self, table: Table, records: Iterable[Row]) -> None:
        with self.transaction(table) as tx:
            tx.stage(table, records)

    def find_by_key(self, table: Table, key: str) -> Optional[Row]:
        key_col = self._key_column(table)
        for row in self.load_all(table):
            if row.get(key_col) == key:
                return row
        return None

    def update_by_key(self, table: Table, key: str, changes: Dict[str, Any]) -> Row:
        key_col = self._key_column(table)
        with self.transaction(table) as tx:
            rows = tx.load(table)
            for row in rows:
                if row.get(key_col) == key:
                    row.update({k: "" if v is None else str(v) for k, v in changes.items()})
                    tx.stage(table, rows)
                    return dict(row)
            raise NotFound(f"{table.value} '{key}' not found")

    @contextmanager
    def transaction(self, *tables: Table) -> Iterator[Transaction]:
        """
        Lock `tables` in the global order, yield a Transaction and commit every
        staged table when the block exits without an exception.
        """
        ordered = sorted(set(tables), key=_LOCK_ORDER.__getitem__)
        acquired: List[threading.RLock] = []
        try:
            for t in ordered:
                lock = self._locks[t]
                lock.acquire()
                acquired.append(lock)
            tx = Transaction(store=self, tables=ordered)
            yield tx
            if tx.staged:
                self._write_many(tx.staged)
        finally:
            for lock in reversed(acquired):
                lock.release()

    # ---------- internals ----------
    def _key_column(self, table: Table) -> str:
        key_col = TABLE_KEYS[table]
        if key_col is None:
            raise ValueError(f"table {table.value} has no single-field key")
        return key_col

    def _read(self, table: Table) -> List[Row]:
        p = self.path(table)
        if not p.exists():
            raise StoreUnavailable(f"table {table.value} is missing ({p})")
        try:
            df = pd.read_csv(p, dtype=str, keep_default_na=False)
        except pd.errors.EmptyDataError:
            return []
        except Exception as e:
            logger.error(f"Failed to read {p}: {e}")
            raise StoreUnavailable(f"table {table.value} is unreadable: {e}") from e
        for c in TABLE_COLUMNS[table]:
            if c not in df.columns:
                df[c] = ""
        return df.to_dict(orient="records")

    def _frame(self, table: Table, rows: List[Row]) -> pd.DataFrame:
        cols = TABLE_COLUMNS[table]
        df = pd.DataFrame(rows, columns=None if rows else cols)
        # keep unknown legacy columns after the known ones
        all_cols = list(dict.fromkeys(cols + list(df.columns)))
        return df.reindex(columns=all_cols).fillna("")

    def _write_many(self, staged: Dict[Table, List[Row]]) -> None:
        """
        Write every staged table to a temp file, then swap them in. If a swap
        fails, tables already swapped are put back to their prior bytes.
        """
        self.data_dir.mkdir(parents=True, exist_ok=True)
        ordered = sorted(staged, key=_LOCK_ORDER.__getitem__)
        temps: Dict[Table, Path] = {}
        try:
            for t in ordered:
                fd, tmp = tempfile.mkstemp(prefix=f".{TABLE_FILES[t]}.", suffix=".tmp", dir=self.data_dir)
                os.close(fd)
                temps[t] = Path(tmp)
                self._frame(t, staged[t]).to_csv(temps[t], index=False)
        except Exception as e:
            for tmp in temps.values():
                tmp.unlink(missing_ok=True)
            logger.error(f"Staging write failed: {e}")
            raise StoreUnavailable(f"could not stage table write: {e}") from e

        previous: Dict[Table, Optional[bytes]] = {}
        swapped: List[Table] = []
        try:
            for t in ordered:
                p = self.path(t)
                previous[t] = p.read_bytes() if p.exists() else None
                os.replace(temps[t], p)
                swapped.append(t)
        except Exception as e:
            logger.error(f"Commit failed after {len(swapped)} table(s), restoring: {e}")
            self._restore(swapped, previous)
            for t in ordered:
                if t not in swapped:
                    temps[t].unlink(missing_ok=True)
            raise StoreUnavailable(f"could not commit table write: {e}") from e

    def _restore(self, swapped: List[Table], previous: Dict[Table, Optional[bytes]]) -> None:
        for t in swapped:
            p = self.path(t)
            before = previous.get(t)
            try:
                if before is None:
                    p.unlink(missing_ok=True)
                    continue
                fd, tmp = tempfile.mkstemp(prefix=f".{TABLE_FILES[t]}.", suffix=".bak", dir=self.data_dir)
                with os.fdopen(fd, "wb") as f:
                    f.write(before)
                os.replace(tmp, p)
            except OSError as e:
                logger.error(f"Could not restore {p}: {e}")
