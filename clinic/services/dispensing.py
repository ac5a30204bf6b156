from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Mapping

from clinic import config
from clinic.errors import AlreadyDispensed, AppointmentNotFound, InsufficientStock
from clinic.schema import (
    Bill,
    BillStatus,
    DispenseResult,
    InventoryItem,
    Medicine,
    OutcomeRecord,
    PrescriptionStatus,
    ReplenishmentStatus,
)
from clinic.services.replenishment import find_medicine, new_request
from clinic.services.store import RecordStore, Table

logger = logging.getLogger(__name__)


@dataclass
class DispensingService:
    """
    Fulfils pending prescriptions: stock check, decrement, status flip and
    bill, committed together or not at all.
    """

    store: RecordStore
    prices: Mapping[str, float] = field(default_factory=config.load_medicine_prices)
    auto_replenish_qty: int = config.AUTO_REPLENISH_QTY

    def __post_init__(self):
        # lookups are by lower-cased name
        self.prices = {str(k).strip().lower(): float(v) for k, v in self.prices.items()}

    def unit_price(self, medicine: str) -> float:
        return float(self.prices.get((medicine or "").strip().lower(), 0.0))

    def dispense(self, appointment_id: str) -> DispenseResult:
        with self.store.transaction(
            Table.APPOINTMENT_RECORD, Table.MEDICINE, Table.REPLENISHMENT, Table.BILL
        ) as tx:
            records = tx.load(Table.APPOINTMENT_RECORD)
            rec_row = next((r for r in records if r.get("appointment_id") == appointment_id), None)
            if rec_row is None:
                raise AppointmentNotFound(f"no outcome record for appointment {appointment_id}")
            rec = OutcomeRecord.from_row(rec_row)
            if rec.prescription_status != PrescriptionStatus.PENDING:
                raise AlreadyDispensed(f"prescription for {appointment_id} is already {rec.prescription_status.value}")

            bills = tx.load(Table.BILL)
            if any(b.get("appointment_id") == appointment_id for b in bills):
                raise AlreadyDispensed(f"a bill already exists for {appointment_id}")

            medicines = tx.load(Table.MEDICINE)
            med_row = find_medicine(medicines, rec.medicine)
            med = Medicine.from_row(med_row)
            if med.stock < rec.quantity:
                raise InsufficientStock(
                    f"{med.name}: {med.stock} in stock, {rec.quantity} prescribed; submit a replenishment request"
                )

            med = med.model_copy(update={"stock": med.stock - rec.quantity})
            med_row.update(med.to_row())
            rec_row["prescription_status"] = PrescriptionStatus.DISPENSED.value
            bill = Bill(
                appointment_id=appointment_id,
                amount=self.unit_price(rec.medicine) * rec.quantity,
                status=BillStatus.PENDING,
                feedback="na",
            )
            bills.append(bill.to_row())

            replenishment = None
            if med.is_low and self.auto_replenish_qty > 0:
                requests = tx.load(Table.REPLENISHMENT)
                already = any(
                    r.get("medicine", "").strip().lower() == med.name.strip().lower()
                    and r.get("status", "").upper() == ReplenishmentStatus.PENDING.value
                    for r in requests
                )
                if not already:
                    replenishment = new_request(requests, med.name, self.auto_replenish_qty)
                    requests.append(replenishment.to_row())
                    tx.stage(Table.REPLENISHMENT, requests)

            tx.stage(Table.APPOINTMENT_RECORD, records)
            tx.stage(Table.MEDICINE, medicines)
            tx.stage(Table.BILL, bills)

        logger.info(f"Dispensed {rec.quantity} x {med.name} for {appointment_id}; stock now {med.stock}")
        if med.is_low:
            logger.warning(f"{med.name} is below its low-stock level ({med.stock} < {med.low_stock_threshold})")
        if replenishment is not None:
            logger.info(f"Replenishment {replenishment.request_id} raised for {med.name}")
        return DispenseResult(
            record=OutcomeRecord.from_row(rec_row),
            medicine=med,
            bill=bill,
            low_stock=med.is_low,
            replenishment=replenishment,
        )

    # ---------- inventory ----------
    def inventory(self) -> List[InventoryItem]:
        out = []
        for row in self.store.load_all(Table.MEDICINE):
            m = Medicine.from_row(row)
            out.append(InventoryItem(
                name=m.name, stock=m.stock, low_stock_threshold=m.low_stock_threshold, low_stock=m.is_low,
            ))
        return out

    def low_stock(self) -> List[InventoryItem]:
        return [m for m in self.inventory() if m.low_stock]

    def get_medicine(self, name: str) -> Medicine:
        return Medicine.from_row(find_medicine(self.store.load_all(Table.MEDICINE), name))
