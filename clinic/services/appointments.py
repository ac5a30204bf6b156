from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

from clinic.errors import AlreadyDecided, AppointmentNotFound, InvalidTransition, SlotUnavailable
from clinic.schema import (
    AcceptResult,
    Appointment,
    AppointmentStatus,
    SlotStatus,
)
from clinic.services.availability import AvailabilityLedger
from clinic.services.store import RecordStore, Row, Table
from clinic.utils import next_sequential_id

logger = logging.getLogger(__name__)

# allowed moves; CANCELLED and COMPLETED are terminal
TRANSITIONS = {
    AppointmentStatus.PENDING: {AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELLED},
    AppointmentStatus.CONFIRMED: {AppointmentStatus.CANCELLED, AppointmentStatus.COMPLETED},
    AppointmentStatus.CANCELLED: set(),
    AppointmentStatus.COMPLETED: set(),
}


def can_transition(src: AppointmentStatus, dst: AppointmentStatus) -> bool:
    return dst in TRANSITIONS[src]


def find_appointment(rows: List[Row], appointment_id: str) -> Row:
    for row in rows:
        if row.get("appointment_id") == appointment_id:
            return row
    raise AppointmentNotFound(f"appointment '{appointment_id}' not found")


def slot_holders(rows: List[Row], doctor_id: str, date: str, slot: str,
                 exclude: Optional[str] = None) -> List[Appointment]:
    """PENDING/CONFIRMED appointments that reference (doctor, date, slot)."""
    out = []
    for row in rows:
        a = Appointment.from_row(row)
        if a.appointment_id == exclude:
            continue
        if a.doctor_id == doctor_id and a.date == date and a.time_slot == slot and a.is_active:
            out.append(a)
    return out


@dataclass
class AppointmentService:
    store: RecordStore
    ledger: AvailabilityLedger

    # ---------- helpers ----------
    def _ensure_open(self, appts: List[Row], slots: List[Row], doctor_id: str, date: str, slot: str,
                     exclude: Optional[str] = None) -> None:
        if self.ledger.status_in(slots, doctor_id, date, slot) != SlotStatus.AVAILABLE:
            raise SlotUnavailable(f"{slot} on {date} is not available for {doctor_id}")
        if slot_holders(appts, doctor_id, date, slot, exclude=exclude):
            raise SlotUnavailable(f"{slot} on {date} is already requested for {doctor_id}")

    def _new_pending(self, appts: List[Row], doctor_id: str, patient_id: str, date: str, slot: str) -> Appointment:
        appt = Appointment(
            appointment_id=next_sequential_id("A", (r.get("appointment_id", "") for r in appts)),
            doctor_id=doctor_id,
            patient_id=patient_id,
            date=date,
            time_slot=slot,
            status=AppointmentStatus.PENDING,
        )
        appts.append(appt.to_row())
        return appt

    # ---------- transitions ----------
    def request_appointment(self, doctor_id: str, patient_id: str, date: str, slot: str) -> Appointment:
        slot = self.ledger.normalize_slot(slot)
        with self.store.transaction(Table.APPOINTMENT, Table.AVAILABILITY) as tx:
            appts = tx.load(Table.APPOINTMENT)
            slots = tx.load(Table.AVAILABILITY)
            self._ensure_open(appts, slots, doctor_id, date, slot)
            appt = self._new_pending(appts, doctor_id, patient_id, date, slot)
            tx.stage(Table.APPOINTMENT, appts)
        logger.info(f"Appointment {appt.appointment_id} requested: {patient_id} with {doctor_id} on {date} {slot}")
        return appt

    def accept(self, appointment_id: str) -> AcceptResult:
        with self.store.transaction(Table.APPOINTMENT, Table.AVAILABILITY) as tx:
            appts = tx.load(Table.APPOINTMENT)
            slots = tx.load(Table.AVAILABILITY)
            row = find_appointment(appts, appointment_id)
            appt = Appointment.from_row(row)
            if appt.status != AppointmentStatus.PENDING:
                raise AlreadyDecided(f"appointment {appointment_id} is already {appt.status.value}")

            self.ledger.book_rows(slots, appt.doctor_id, appt.date, appt.time_slot, appointment_id)
            row["status"] = AppointmentStatus.CONFIRMED.value

            # a slot holds one CONFIRMED appointment; competing requests lose
            auto_cancelled = []
            for other in slot_holders(appts, appt.doctor_id, appt.date, appt.time_slot, exclude=appointment_id):
                if other.status == AppointmentStatus.PENDING:
                    find_appointment(appts, other.appointment_id)["status"] = AppointmentStatus.CANCELLED.value
                    auto_cancelled.append(other.appointment_id)

            tx.stage(Table.APPOINTMENT, appts)
            tx.stage(Table.AVAILABILITY, slots)
        logger.info(f"Appointment {appointment_id} confirmed")
        if auto_cancelled:
            logger.info(f"Cancelled competing requests for the same slot: {', '.join(auto_cancelled)}")
        return AcceptResult(appointment=Appointment.from_row(row), auto_cancelled=auto_cancelled)

    def decline(self, appointment_id: str) -> Appointment:
        with self.store.transaction(Table.APPOINTMENT, Table.AVAILABILITY) as tx:
            appts = tx.load(Table.APPOINTMENT)
            slots = tx.load(Table.AVAILABILITY)
            row = find_appointment(appts, appointment_id)
            appt = Appointment.from_row(row)
            if appt.status != AppointmentStatus.PENDING:
                raise AlreadyDecided(f"appointment {appointment_id} is already {appt.status.value}")
            row["status"] = AppointmentStatus.CANCELLED.value
            if self.ledger.free_rows(slots, appt.doctor_id, appt.date, appt.time_slot, appointment_id):
                tx.stage(Table.AVAILABILITY, slots)
            tx.stage(Table.APPOINTMENT, appts)
        logger.info(f"Appointment {appointment_id} declined")
        return Appointment.from_row(row)

    def cancel(self, appointment_id: str) -> Appointment:
        with self.store.transaction(Table.APPOINTMENT, Table.AVAILABILITY) as tx:
            appts = tx.load(Table.APPOINTMENT)
            slots = tx.load(Table.AVAILABILITY)
            row = find_appointment(appts, appointment_id)
            appt = Appointment.from_row(row)
            if not can_transition(appt.status, AppointmentStatus.CANCELLED):
                raise InvalidTransition(f"cannot cancel a {appt.status.value} appointment")
            row["status"] = AppointmentStatus.CANCELLED.value
            if self.ledger.free_rows(slots, appt.doctor_id, appt.date, appt.time_slot, appointment_id):
                tx.stage(Table.AVAILABILITY, slots)
            tx.stage(Table.APPOINTMENT, appts)
        logger.info(f"Appointment {appointment_id} cancelled")
        return Appointment.from_row(row)

    def reschedule(self, appointment_id: str, new_date: str, new_slot: str) -> Appointment:
        """
        Move an open appointment to another slot. The old appointment is
        cancelled (its slot released) and the new slot is requested as a fresh
        PENDING appointment for the doctor to decide on. Returns the new one.
        """
        new_slot = self.ledger.normalize_slot(new_slot)
        with self.store.transaction(Table.APPOINTMENT, Table.AVAILABILITY) as tx:
            appts = tx.load(Table.APPOINTMENT)
            slots = tx.load(Table.AVAILABILITY)
            row = find_appointment(appts, appointment_id)
            old = Appointment.from_row(row)
            if not old.is_active:
                raise InvalidTransition(f"cannot reschedule a {old.status.value} appointment")
            if old.date == new_date and old.time_slot == new_slot:
                return old

            self._ensure_open(appts, slots, old.doctor_id, new_date, new_slot, exclude=appointment_id)

            row["status"] = AppointmentStatus.CANCELLED.value
            self.ledger.free_rows(slots, old.doctor_id, old.date, old.time_slot, appointment_id)
            new = self._new_pending(appts, old.doctor_id, old.patient_id, new_date, new_slot)

            tx.stage(Table.APPOINTMENT, appts)
            tx.stage(Table.AVAILABILITY, slots)
        logger.info(f"Appointment {appointment_id} rescheduled as {new.appointment_id} ({new_date} {new_slot})")
        return new

    # ---------- queries ----------
    def _all(self) -> List[Appointment]:
        return [Appointment.from_row(r) for r in self.store.load_all(Table.APPOINTMENT)]

    def get(self, appointment_id: str) -> Appointment:
        return Appointment.from_row(find_appointment(self.store.load_all(Table.APPOINTMENT), appointment_id))

    def status(self, appointment_id: str) -> AppointmentStatus:
        return self.get(appointment_id).status

    def list_for_patient(self, patient_id: str) -> List[Appointment]:
        return [a for a in self._all() if a.patient_id == patient_id]

    def pending_for_doctor(self, doctor_id: str) -> List[Appointment]:
        return [a for a in self._all() if a.doctor_id == doctor_id and a.status == AppointmentStatus.PENDING]

    def upcoming_for_doctor(self, doctor_id: str) -> List[Appointment]:
        out = [a for a in self._all() if a.doctor_id == doctor_id and a.status == AppointmentStatus.CONFIRMED]
        return sorted(out, key=lambda a: (a.date, a.time_slot))

    def for_doctor_on(self, doctor_id: str, date: str) -> List[Appointment]:
        return [a for a in self.upcoming_for_doctor(doctor_id) if a.date == date]
