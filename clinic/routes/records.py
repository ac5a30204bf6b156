# clinic/routes/records.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter
from pydantic import BaseModel, Field

from ..state import get_services

router = APIRouter()


class OutcomeIn(BaseModel):
    diagnosis: str
    medicine: str = "NA"
    quantity: int = Field(default=0, ge=0)
    treatment_plan: str = ""
    date: str
    service_type: str = ""
    notes: str = ""


class MedicalRecordUpdate(BaseModel):
    diagnosis: str
    prescription: str = "NA"
    quantity: int = Field(default=0, ge=0)
    treatment_plan: str = ""
    notes: str = ""


@router.post("/appointments/{appointment_id}/outcome")
def record_outcome(appointment_id: str, payload: OutcomeIn):
    rec = get_services().outcomes.record_outcome(
        appointment_id,
        payload.diagnosis,
        payload.medicine,
        payload.quantity,
        payload.treatment_plan,
        payload.date,
        payload.service_type,
        payload.notes,
    )
    return {"status": "ok", "record": rec.model_dump(mode="json")}


@router.put("/appointments/{appointment_id}/outcome")
def update_medical_record(appointment_id: str, payload: MedicalRecordUpdate):
    rec = get_services().outcomes.update_medical_record(
        appointment_id,
        payload.diagnosis,
        payload.prescription,
        payload.quantity,
        payload.treatment_plan,
        payload.notes,
    )
    return {"status": "ok", "record": rec.model_dump(mode="json")}


@router.get("/appointments/{appointment_id}/outcome")
def view_outcome(appointment_id: str):
    return {"record": get_services().outcomes.get_outcome(appointment_id).model_dump(mode="json")}


@router.get("/patients/{patient_id}/record")
def medical_record(patient_id: str):
    return get_services().outcomes.medical_record(patient_id).model_dump(mode="json")


@router.get("/patients/{patient_id}/outcomes")
def patient_outcomes(patient_id: str):
    recs = get_services().outcomes.outcomes_for_patient(patient_id)
    return {"patient_id": patient_id, "records": [r.model_dump(mode="json") for r in recs]}


class ContactUpdate(BaseModel):
    email: Optional[str] = None
    contact: Optional[str] = None


@router.patch("/patients/{patient_id}")
def update_contact(patient_id: str, payload: ContactUpdate):
    patient = get_services().outcomes.update_contact(patient_id, email=payload.email, contact=payload.contact)
    return {"status": "ok", "patient": patient.model_dump(mode="json")}
