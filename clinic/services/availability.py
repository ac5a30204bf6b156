from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from clinic import config
from clinic.errors import InvalidSlot, SlotConflict
from clinic.schema import AvailabilitySlot, SlotStatus
from clinic.services.store import RecordStore, Row, Table
from clinic.utils import make_slots, slot_key, split_slot

logger = logging.getLogger(__name__)


def _match(row: Row, doctor_id: str, date: str, slot: Optional[str] = None) -> bool:
    if row.get("doctor_id") != doctor_id or row.get("date") != date:
        return False
    return slot is None or row.get("slot") == slot


@dataclass
class AvailabilityLedger:
    """Per doctor, per date: a fixed grid of half-hour slots and their status."""

    store: RecordStore
    start: str = config.SLOT_START
    end: str = config.SLOT_END
    step_min: int = config.SLOT_MINUTES

    # ---------- grid ----------
    def slot_grid(self) -> List[str]:
        return [slot_key(s, e) for s, e in make_slots(self.step_min, [(self.start, self.end)])]

    def normalize_slot(self, slot: str) -> str:
        s, e = split_slot(slot)
        key = slot_key(s, e) if s and e else None
        if key is None or key not in self.slot_grid():
            raise InvalidSlot(f"'{slot}' is not a slot on the {self.start}-{self.end} grid")
        return key

    def _order(self) -> Dict[str, int]:
        return {s: i for i, s in enumerate(self.slot_grid())}

    # ---------- row helpers (used inside a caller's transaction) ----------
    def find_row(self, rows: List[Row], doctor_id: str, date: str, slot: str) -> Optional[Row]:
        for row in rows:
            if _match(row, doctor_id, date, slot):
                return row
        return None

    def status_in(self, rows: List[Row], doctor_id: str, date: str, slot: str) -> SlotStatus:
        row = self.find_row(rows, doctor_id, date, slot)
        if row is None:
            return SlotStatus.UNAVAILABLE
        return AvailabilitySlot.from_row(row).status

    def book_rows(self, rows: List[Row], doctor_id: str, date: str, slot: str, appointment_id: str) -> None:
        row = self.find_row(rows, doctor_id, date, slot)
        if row is None:
            raise SlotConflict(f"{doctor_id} never opened {slot} on {date}")
        current = AvailabilitySlot.from_row(row)
        if current.status == SlotStatus.BOOKED:
            if current.appointment_id == appointment_id:
                return
            raise SlotConflict(f"{slot} on {date} is already booked by {current.appointment_id}")
        if current.status != SlotStatus.AVAILABLE:
            raise SlotConflict(f"{doctor_id} marked {slot} on {date} unavailable")
        row["status"] = SlotStatus.BOOKED.value
        row["appointment_id"] = appointment_id

    def free_rows(self, rows: List[Row], doctor_id: str, date: str, slot: str,
                  appointment_id: Optional[str] = None) -> bool:
        """BOOKED -> AVAILABLE. Returns False when there was nothing to free."""
        row = self.find_row(rows, doctor_id, date, slot)
        if row is None or row.get("status") != SlotStatus.BOOKED.value:
            return False
        if appointment_id and row.get("appointment_id") not in ("", appointment_id):
            raise SlotConflict(f"{slot} on {date} is held by {row.get('appointment_id')}, not {appointment_id}")
        row["status"] = SlotStatus.AVAILABLE.value
        row["appointment_id"] = ""
        return True

    def retire_rows(self, rows: List[Row], doctor_id: str, date: str, slot: str, appointment_id: str) -> None:
        """A completed visit consumes its slot: BOOKED -> UNAVAILABLE."""
        row = self.find_row(rows, doctor_id, date, slot)
        if row is not None and row.get("appointment_id") == appointment_id:
            row["status"] = SlotStatus.UNAVAILABLE.value
            row["appointment_id"] = ""

    # ---------- public API ----------
    def set_availability(self, doctor_id: str, date: str, slots: List[str]) -> List[str]:
        wanted = {self.normalize_slot(s) for s in slots}
        with self.store.transaction(Table.AVAILABILITY) as tx:
            rows = tx.load(Table.AVAILABILITY)
            existing = {r["slot"]: r for r in rows if _match(r, doctor_id, date)}
            for slot in self.slot_grid():
                row = existing.get(slot)
                if row is not None and row.get("status") == SlotStatus.BOOKED.value:
                    continue
                status = SlotStatus.AVAILABLE if slot in wanted else SlotStatus.UNAVAILABLE
                if row is None:
                    if status == SlotStatus.UNAVAILABLE:
                        continue
                    rows.append(AvailabilitySlot(doctor_id=doctor_id, date=date, slot=slot, status=status).to_row())
                else:
                    row["status"] = status.value
                    row["appointment_id"] = ""
            tx.stage(Table.AVAILABILITY, rows)
        logger.info(f"Availability set for {doctor_id} on {date}: {len(wanted)} slot(s)")
        return self.view_availability(doctor_id, date)

    def view_availability(self, doctor_id: str, date: str) -> List[str]:
        return [s.slot for s in self.view_schedule(doctor_id, date) if s.status == SlotStatus.AVAILABLE]

    def view_schedule(self, doctor_id: str, date: str) -> List[AvailabilitySlot]:
        order = self._order()
        rows = [r for r in self.store.load_all(Table.AVAILABILITY) if _match(r, doctor_id, date)]
        out = [AvailabilitySlot.from_row(r) for r in rows]
        return sorted(out, key=lambda s: order.get(s.slot, len(order)))

    def mark_booked(self, doctor_id: str, date: str, slot: str, appointment_id: str) -> None:
        slot = self.normalize_slot(slot)
        with self.store.transaction(Table.AVAILABILITY) as tx:
            rows = tx.load(Table.AVAILABILITY)
            self.book_rows(rows, doctor_id, date, slot, appointment_id)
            tx.stage(Table.AVAILABILITY, rows)
        logger.info(f"Slot {doctor_id} {date} {slot} booked by {appointment_id}")

    def mark_free(self, doctor_id: str, date: str, slot: str, appointment_id: Optional[str] = None) -> bool:
        slot = self.normalize_slot(slot)
        with self.store.transaction(Table.AVAILABILITY) as tx:
            rows = tx.load(Table.AVAILABILITY)
            freed = self.free_rows(rows, doctor_id, date, slot, appointment_id)
            if freed:
                tx.stage(Table.AVAILABILITY, rows)
        if freed:
            logger.info(f"Slot {doctor_id} {date} {slot} released")
        return freed
