# clinic/schema.py
from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from clinic.errors import CorruptRecord


class AppointmentStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


class SlotStatus(str, Enum):
    AVAILABLE = "AVAILABLE"
    UNAVAILABLE = "UNAVAILABLE"
    BOOKED = "BOOKED"


class PrescriptionStatus(str, Enum):
    PENDING = "PENDING"
    DISPENSED = "DISPENSED"


class ReplenishmentStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class BillStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"


ACTIVE_APPOINTMENT_STATES = (AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED)


class Record(BaseModel):
    """A row of a flat table. Every column is persisted as text."""

    @field_validator("status", "prescription_status", mode="before", check_fields=False)
    @classmethod
    def upper_status(cls, v):
        # older tables were written with lower-case states ("pending")
        return v.strip().upper() if isinstance(v, str) else v

    @classmethod
    def from_row(cls, row: Dict[str, Any]):
        try:
            return cls.model_validate(row)
        except ValidationError as e:
            raise CorruptRecord(f"{cls.__name__} row cannot be read: {e.errors()[0]['msg']}") from e

    def to_row(self) -> Dict[str, str]:
        out: Dict[str, str] = {}
        for k, v in self.model_dump().items():
            if isinstance(v, Enum):
                v = v.value
            out[k] = "" if v is None else str(v)
        return out


class Appointment(Record):
    appointment_id: str
    doctor_id: str
    patient_id: str
    date: str
    time_slot: str
    status: AppointmentStatus = AppointmentStatus.PENDING

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_APPOINTMENT_STATES


class AvailabilitySlot(Record):
    doctor_id: str
    date: str
    slot: str
    status: SlotStatus = SlotStatus.UNAVAILABLE
    appointment_id: str = ""


class OutcomeRecord(Record):
    appointment_id: str
    diagnosis: str = ""
    medicine: str = ""
    quantity: int = Field(default=0, ge=0)
    prescription_status: PrescriptionStatus = PrescriptionStatus.PENDING
    treatment_plan: str = ""
    date: str = ""
    service_type: str = ""
    notes: str = ""


class Patient(Record):
    patient_id: str
    name: str = ""
    gender: str = ""
    dob: str = ""
    contact: str = ""
    email: str = ""
    blood_type: str = ""
    past_treatments: str = ""


class PatientHistoryEntry(BaseModel):
    appointment_id: str
    diagnosis: str = ""
    treatment_plan: str = ""


class Medicine(Record):
    name: str
    stock: int = Field(default=0, ge=0)
    low_stock_threshold: int = 0

    @property
    def is_low(self) -> bool:
        return self.stock < self.low_stock_threshold


class ReplenishmentRequest(Record):
    request_id: str
    medicine: str
    quantity: int
    status: ReplenishmentStatus = ReplenishmentStatus.PENDING


class Bill(Record):
    appointment_id: str
    amount: float = 0.0
    status: BillStatus = BillStatus.PENDING
    feedback: str = "na"


class MedicalRecord(BaseModel):
    patient: Patient
    history: List[PatientHistoryEntry] = []


class DispenseResult(BaseModel):
    record: OutcomeRecord
    medicine: Medicine
    bill: Bill
    low_stock: bool = False
    replenishment: Optional[ReplenishmentRequest] = None


class AcceptResult(BaseModel):
    appointment: Appointment
    auto_cancelled: List[str] = []


class InventoryItem(BaseModel):
    name: str
    stock: int
    low_stock_threshold: int
    low_stock: bool
