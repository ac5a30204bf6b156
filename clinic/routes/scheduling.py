# clinic/routes/scheduling.py
from __future__ import annotations

from typing import List

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..state import get_services
from ..utils import is_iso_date

router = APIRouter()


class AvailabilityIn(BaseModel):
    doctor_id: str
    date: str
    slots: List[str]


class AppointmentRequest(BaseModel):
    doctor_id: str
    patient_id: str
    date: str
    slot: str


class RescheduleIn(BaseModel):
    date: str
    slot: str


def _bad_date() -> JSONResponse:
    return JSONResponse(status_code=422, content={"error": "validation_failed", "detail": "date must be YYYY-MM-DD"})


# ---------- availability ----------

@router.get("/availability/grid")
def slot_grid():
    return {"slots": get_services().availability.slot_grid()}


@router.get("/availability")
def view_availability(doctor_id: str, date: str):
    """AVAILABLE slots for a doctor on a date, in grid order."""
    if not is_iso_date(date):
        return _bad_date()
    slots = get_services().availability.view_availability(doctor_id, date)
    return {"doctor_id": doctor_id, "date": date, "slots": slots}


@router.put("/availability")
def set_availability(payload: AvailabilityIn):
    if not is_iso_date(payload.date):
        return _bad_date()
    slots = get_services().availability.set_availability(payload.doctor_id, payload.date, payload.slots)
    return {"doctor_id": payload.doctor_id, "date": payload.date, "slots": slots}


@router.get("/availability/schedule")
def view_schedule(doctor_id: str, date: str):
    if not is_iso_date(date):
        return _bad_date()
    svc = get_services()
    return {
        "doctor_id": doctor_id,
        "date": date,
        "slots": [s.model_dump(mode="json") for s in svc.availability.view_schedule(doctor_id, date)],
        "appointments": [a.model_dump(mode="json") for a in svc.appointments.for_doctor_on(doctor_id, date)],
    }


# ---------- appointments ----------

@router.post("/appointments")
def request_appointment(payload: AppointmentRequest):
    if not is_iso_date(payload.date):
        return _bad_date()
    appt = get_services().appointments.request_appointment(
        payload.doctor_id, payload.patient_id, payload.date, payload.slot
    )
    return {"status": "ok", "appointment": appt.model_dump(mode="json")}


@router.get("/appointments/{appointment_id}")
def get_appointment(appointment_id: str):
    return {"appointment": get_services().appointments.get(appointment_id).model_dump(mode="json")}


@router.post("/appointments/{appointment_id}/accept")
def accept(appointment_id: str):
    result = get_services().appointments.accept(appointment_id)
    return {"status": "ok", **result.model_dump(mode="json")}


@router.post("/appointments/{appointment_id}/decline")
def decline(appointment_id: str):
    appt = get_services().appointments.decline(appointment_id)
    return {"status": "ok", "appointment": appt.model_dump(mode="json")}


@router.post("/appointments/{appointment_id}/cancel")
def cancel(appointment_id: str):
    appt = get_services().appointments.cancel(appointment_id)
    return {"status": "ok", "appointment": appt.model_dump(mode="json")}


@router.post("/appointments/{appointment_id}/reschedule")
def reschedule(appointment_id: str, payload: RescheduleIn):
    if not is_iso_date(payload.date):
        return _bad_date()
    appt = get_services().appointments.reschedule(appointment_id, payload.date, payload.slot)
    return {"status": "ok", "replaces": appointment_id, "appointment": appt.model_dump(mode="json")}


@router.get("/doctors/{doctor_id}/appointments")
def doctor_appointments(doctor_id: str, status: str = "confirmed"):
    """status: 'confirmed' (upcoming) or 'pending' (requests awaiting a decision)."""
    svc = get_services().appointments
    appts = svc.pending_for_doctor(doctor_id) if status.lower() == "pending" else svc.upcoming_for_doctor(doctor_id)
    return {"doctor_id": doctor_id, "appointments": [a.model_dump(mode="json") for a in appts]}


@router.get("/patients/{patient_id}/appointments")
def patient_appointments(patient_id: str):
    appts = get_services().appointments.list_for_patient(patient_id)
    return {"patient_id": patient_id, "appointments": [a.model_dump(mode="json") for a in appts]}
