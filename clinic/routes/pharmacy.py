# clinic/routes/pharmacy.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter
from pydantic import BaseModel, Field

from ..schema import BillStatus, ReplenishmentStatus
from ..state import get_services

router = APIRouter()


class ReplenishmentIn(BaseModel):
    medicine: str
    quantity: int = Field(gt=0)


class PaymentIn(BaseModel):
    feedback: Optional[str] = None


@router.post("/prescriptions/{appointment_id}/dispense")
def dispense(appointment_id: str):
    """Dispense the pending prescription of a completed appointment and bill it."""
    result = get_services().dispensing.dispense(appointment_id)
    return {"status": "ok", **result.model_dump(mode="json")}


@router.get("/inventory")
def inventory():
    return {"medicines": [m.model_dump() for m in get_services().dispensing.inventory()]}


@router.get("/inventory/low")
def low_stock():
    return {"medicines": [m.model_dump() for m in get_services().dispensing.low_stock()]}


@router.post("/replenishments")
def submit_replenishment(payload: ReplenishmentIn):
    req = get_services().replenishment.submit_replenishment(payload.medicine, payload.quantity)
    return {"status": "ok", "request": req.model_dump(mode="json")}


@router.get("/replenishments")
def list_replenishments(status: Optional[ReplenishmentStatus] = None):
    reqs = get_services().replenishment.list_requests(status)
    return {"requests": [r.model_dump(mode="json") for r in reqs]}


@router.post("/replenishments/{request_id}/approve")
def approve_replenishment(request_id: str):
    req = get_services().replenishment.approve(request_id)
    return {"status": "ok", "request": req.model_dump(mode="json")}


@router.post("/replenishments/{request_id}/reject")
def reject_replenishment(request_id: str):
    req = get_services().replenishment.reject(request_id)
    return {"status": "ok", "request": req.model_dump(mode="json")}


@router.get("/bills")
def list_bills(status: Optional[BillStatus] = None):
    return {"bills": [b.model_dump(mode="json") for b in get_services().billing.list_bills(status)]}


@router.get("/bills/{appointment_id}")
def get_bill(appointment_id: str):
    return {"bill": get_services().billing.get_bill(appointment_id).model_dump(mode="json")}


@router.post("/bills/{appointment_id}/pay")
def pay_bill(appointment_id: str, payload: Optional[PaymentIn] = None):
    feedback = payload.feedback if payload else None
    bill = get_services().billing.pay_bill(appointment_id, feedback)
    return {"status": "ok", "bill": bill.model_dump(mode="json")}
