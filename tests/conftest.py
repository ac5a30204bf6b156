from __future__ import annotations

import pytest

from clinic.schema import Medicine, OutcomeRecord, Patient
from clinic.services import build_services
from clinic.services.store import Table

PRICES = {"paracetamol": 0.125, "ibuprofen": 0.50, "amoxicillin": 0.95}

DAY = "2024-01-10"
FIRST = "09:00-09:30"
SECOND = "09:30-10:00"


@pytest.fixture
def services(tmp_path):
    return build_services(tmp_path / "data", prices=PRICES, auto_replenish_qty=0)


@pytest.fixture
def seeded(services):
    services.store.save_all(Table.PATIENT, [
        Patient(patient_id="P1001", name="Alice Brown", gender="Female", blood_type="A+").to_row(),
        Patient(patient_id="P1002", name="Bob Stone", gender="Male", blood_type="O-").to_row(),
    ])
    services.store.save_all(Table.MEDICINE, [
        Medicine(name="paracetamol", stock=10, low_stock_threshold=5).to_row(),
        Medicine(name="Ibuprofen", stock=50, low_stock_threshold=10).to_row(),
        Medicine(name="Vitamin C", stock=20, low_stock_threshold=5).to_row(),
    ])
    return services


def confirmed_appointment(svc, doctor_id="D001", patient_id="P1001", date=DAY, slot=FIRST):
    """Open the slot, request it and accept it; returns the appointment id."""
    current = svc.availability.view_availability(doctor_id, date)
    svc.availability.set_availability(doctor_id, date, sorted(set(current) | {slot}))
    appt = svc.appointments.request_appointment(doctor_id, patient_id, date, slot)
    svc.appointments.accept(appt.appointment_id)
    return appt.appointment_id


def put_outcome(svc, appointment_id="A1", medicine="paracetamol", quantity=4, status="PENDING"):
    rows = svc.store.load_all(Table.APPOINTMENT_RECORD)
    rows.append(OutcomeRecord(
        appointment_id=appointment_id, diagnosis="Fever", medicine=medicine, quantity=quantity,
        prescription_status=status, treatment_plan="Rest", date=DAY, service_type="Consultation",
    ).to_row())
    svc.store.save_all(Table.APPOINTMENT_RECORD, rows)
