from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import List, Optional

from clinic.errors import (
    DateMismatch,
    InvalidTransition,
    OutcomeAlreadyRecorded,
    OutcomeNotFound,
    PatientNotFound,
    ValidationFailed,
)
from clinic.schema import (
    Appointment,
    AppointmentStatus,
    MedicalRecord,
    OutcomeRecord,
    Patient,
    PatientHistoryEntry,
    PrescriptionStatus,
)
from clinic.services.appointments import find_appointment
from clinic.services.availability import AvailabilityLedger
from clinic.services.store import RecordStore, Row, Table

logger = logging.getLogger(__name__)

ENTRY_SEP = "; "
_FIELD_SEP = re.compile(r"\s*-(?:\s+|$)")


# ---------- past treatments blob ----------
def _clean(text: str) -> str:
    return (text or "").replace(";", ",").strip()


def format_history_entry(entry: PatientHistoryEntry) -> str:
    return f"{entry.appointment_id} - {_clean(entry.diagnosis)} - {_clean(entry.treatment_plan)}"


def parse_history(blob: str) -> List[PatientHistoryEntry]:
    out: List[PatientHistoryEntry] = []
    for chunk in (blob or "").split(";"):
        chunk = chunk.strip()
        if not chunk:
            continue
        parts = _FIELD_SEP.split(chunk, maxsplit=2) + ["", ""]
        out.append(PatientHistoryEntry(appointment_id=parts[0].strip(), diagnosis=parts[1], treatment_plan=parts[2]))
    return out


def upsert_history(blob: str, entry: PatientHistoryEntry) -> str:
    """Replace the entry for entry.appointment_id, or append it."""
    entries = parse_history(blob)
    for i, e in enumerate(entries):
        if e.appointment_id == entry.appointment_id:
            entries[i] = entry
            break
    else:
        entries.append(entry)
    return ENTRY_SEP.join(format_history_entry(e) for e in entries)


def _find_record(rows: List[Row], appointment_id: str) -> Optional[Row]:
    for row in rows:
        if row.get("appointment_id") == appointment_id:
            return row
    return None


def _find_patient(rows: List[Row], patient_id: str) -> Row:
    for row in rows:
        if row.get("patient_id") == patient_id:
            return row
    raise PatientNotFound(f"patient '{patient_id}' not found")


def _check_quantity(quantity) -> int:
    try:
        q = int(quantity)
    except (TypeError, ValueError):
        raise ValidationFailed(f"quantity must be an integer, got {quantity!r}")
    if q < 0:
        raise ValidationFailed("quantity must be 0 or a positive integer")
    return q


@dataclass
class OutcomeService:
    store: RecordStore
    ledger: AvailabilityLedger

    def record_outcome(
        self,
        appointment_id: str,
        diagnosis: str,
        medicine: str,
        quantity: int,
        treatment_plan: str,
        date: str,
        service_type: str,
        notes: str,
    ) -> OutcomeRecord:
        quantity = _check_quantity(quantity)
        with self.store.transaction(
            Table.APPOINTMENT, Table.AVAILABILITY, Table.APPOINTMENT_RECORD, Table.PATIENT
        ) as tx:
            appts = tx.load(Table.APPOINTMENT)
            records = tx.load(Table.APPOINTMENT_RECORD)

            row = find_appointment(appts, appointment_id)
            appt = Appointment.from_row(row)
            if _find_record(records, appointment_id) is not None:
                raise OutcomeAlreadyRecorded(f"outcome for {appointment_id} was already recorded")
            if appt.status != AppointmentStatus.CONFIRMED:
                raise InvalidTransition(f"cannot complete a {appt.status.value} appointment")
            if appt.date != date:
                raise DateMismatch(f"appointment {appointment_id} is on {appt.date}, not {date}")

            patients = tx.load(Table.PATIENT)
            patient_row = _find_patient(patients, appt.patient_id)
            slots = tx.load(Table.AVAILABILITY)

            outcome = OutcomeRecord(
                appointment_id=appointment_id,
                diagnosis=diagnosis,
                medicine=medicine,
                quantity=quantity,
                prescription_status=PrescriptionStatus.PENDING,
                treatment_plan=treatment_plan,
                date=date,
                service_type=service_type,
                notes=notes,
            )
            records.append(outcome.to_row())
            row["status"] = AppointmentStatus.COMPLETED.value
            self.ledger.retire_rows(slots, appt.doctor_id, appt.date, appt.time_slot, appointment_id)
            patient_row["past_treatments"] = upsert_history(
                patient_row.get("past_treatments", ""),
                PatientHistoryEntry(appointment_id=appointment_id, diagnosis=diagnosis, treatment_plan=treatment_plan),
            )

            tx.stage(Table.APPOINTMENT_RECORD, records)
            tx.stage(Table.APPOINTMENT, appts)
            tx.stage(Table.AVAILABILITY, slots)
            tx.stage(Table.PATIENT, patients)
        logger.info(f"Outcome recorded for {appointment_id}; appointment completed")
        return outcome

    def update_medical_record(
        self,
        appointment_id: str,
        diagnosis: str,
        prescription: str,
        quantity: int,
        treatment_plan: str,
        notes: str,
    ) -> OutcomeRecord:
        quantity = _check_quantity(quantity)
        with self.store.transaction(Table.APPOINTMENT, Table.APPOINTMENT_RECORD, Table.PATIENT) as tx:
            records = tx.load(Table.APPOINTMENT_RECORD)
            rec = _find_record(records, appointment_id)
            if rec is None:
                raise OutcomeNotFound(f"no outcome recorded for {appointment_id}")
            appt = Appointment.from_row(find_appointment(tx.load(Table.APPOINTMENT), appointment_id))
            patients = tx.load(Table.PATIENT)
            patient_row = _find_patient(patients, appt.patient_id)

            rec.update(
                diagnosis=diagnosis,
                medicine=prescription,
                quantity=str(quantity),
                treatment_plan=treatment_plan,
                notes=notes,
            )
            patient_row["past_treatments"] = upsert_history(
                patient_row.get("past_treatments", ""),
                PatientHistoryEntry(appointment_id=appointment_id, diagnosis=diagnosis, treatment_plan=treatment_plan),
            )
            tx.stage(Table.APPOINTMENT_RECORD, records)
            tx.stage(Table.PATIENT, patients)
        logger.info(f"Medical record updated for {appointment_id}")
        return OutcomeRecord.from_row(rec)

    def update_contact(self, patient_id: str, email: Optional[str] = None,
                       contact: Optional[str] = None) -> Patient:
        """Patient self-service: change email and/or contact number only."""
        with self.store.transaction(Table.PATIENT) as tx:
            patients = tx.load(Table.PATIENT)
            row = _find_patient(patients, patient_id)
            if email is not None:
                row["email"] = email.strip()
            if contact is not None:
                row["contact"] = contact.strip()
            tx.stage(Table.PATIENT, patients)
        logger.info(f"Contact details updated for {patient_id}")
        return Patient.from_row(row)

    # ---------- queries ----------
    def get_outcome(self, appointment_id: str) -> OutcomeRecord:
        """Outcome of a completed appointment, as the pharmacist sees it."""
        appt = Appointment.from_row(find_appointment(self.store.load_all(Table.APPOINTMENT), appointment_id))
        if appt.status != AppointmentStatus.COMPLETED:
            raise OutcomeNotFound(f"appointment {appointment_id} is not completed")
        rec = _find_record(self.store.load_all(Table.APPOINTMENT_RECORD), appointment_id)
        if rec is None:
            raise OutcomeNotFound(f"no outcome recorded for {appointment_id}")
        return OutcomeRecord.from_row(rec)

    def outcomes_for_patient(self, patient_id: str) -> List[OutcomeRecord]:
        mine = {
            r["appointment_id"]
            for r in self.store.load_all(Table.APPOINTMENT)
            if r.get("patient_id") == patient_id
        }
        return [
            OutcomeRecord.from_row(r)
            for r in self.store.load_all(Table.APPOINTMENT_RECORD)
            if r.get("appointment_id") in mine
        ]

    def medical_record(self, patient_id: str) -> MedicalRecord:
        patient = Patient.from_row(_find_patient(self.store.load_all(Table.PATIENT), patient_id))
        return MedicalRecord(patient=patient, history=parse_history(patient.past_treatments))
