from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

from clinic.errors import InvalidTransition, MedicineNotFound, ReplenishmentNotFound, ValidationFailed
from clinic.schema import Medicine, ReplenishmentRequest, ReplenishmentStatus
from clinic.services.store import RecordStore, Row, Table
from clinic.utils import random_unique_id

logger = logging.getLogger(__name__)


def find_medicine(rows: List[Row], name: str) -> Row:
    wanted = (name or "").strip().lower()
    for row in rows:
        if row.get("name", "").strip().lower() == wanted:
            return row
    raise MedicineNotFound(f"medicine '{name}' is not in the inventory")


def new_request(existing: List[Row], medicine: str, quantity: int) -> ReplenishmentRequest:
    rid = random_unique_id("RR", (r.get("request_id", "") for r in existing))
    return ReplenishmentRequest(
        request_id=rid, medicine=medicine, quantity=quantity, status=ReplenishmentStatus.PENDING,
    )


@dataclass
class ReplenishmentService:
    store: RecordStore

    def submit_replenishment(self, medicine_name: str, quantity: int) -> ReplenishmentRequest:
        with self.store.transaction(Table.REPLENISHMENT) as tx:
            rows = tx.load(Table.REPLENISHMENT)
            req = new_request(rows, medicine_name, int(quantity))
            rows.append(req.to_row())
            tx.stage(Table.REPLENISHMENT, rows)
        logger.info(f"Replenishment {req.request_id} submitted: {req.quantity} x {medicine_name}")
        return req

    def _decide(self, tx, request_id: str) -> tuple[List[Row], Row, ReplenishmentRequest]:
        rows = tx.load(Table.REPLENISHMENT)
        row = next((r for r in rows if r.get("request_id") == request_id), None)
        if row is None:
            raise ReplenishmentNotFound(f"replenishment request '{request_id}' not found")
        req = ReplenishmentRequest.from_row(row)
        if req.status != ReplenishmentStatus.PENDING:
            raise InvalidTransition(f"request {request_id} is already {req.status.value}")
        return rows, row, req

    def approve(self, request_id: str) -> ReplenishmentRequest:
        """Administrator approval: the requested quantity goes into stock."""
        with self.store.transaction(Table.MEDICINE, Table.REPLENISHMENT) as tx:
            rows, row, req = self._decide(tx, request_id)
            if req.quantity <= 0:
                raise ValidationFailed(f"request {request_id} asks for {req.quantity} units")
            medicines = tx.load(Table.MEDICINE)
            med_row = find_medicine(medicines, req.medicine)
            med = Medicine.from_row(med_row)
            med_row.update(med.model_copy(update={"stock": med.stock + req.quantity}).to_row())
            row["status"] = ReplenishmentStatus.APPROVED.value
            tx.stage(Table.MEDICINE, medicines)
            tx.stage(Table.REPLENISHMENT, rows)
        logger.info(f"Replenishment {request_id} approved: {med.name} +{req.quantity}")
        return ReplenishmentRequest.from_row(row)

    def reject(self, request_id: str) -> ReplenishmentRequest:
        with self.store.transaction(Table.REPLENISHMENT) as tx:
            rows, row, _ = self._decide(tx, request_id)
            row["status"] = ReplenishmentStatus.REJECTED.value
            tx.stage(Table.REPLENISHMENT, rows)
        logger.info(f"Replenishment {request_id} rejected")
        return ReplenishmentRequest.from_row(row)

    def list_requests(self, status: Optional[ReplenishmentStatus] = None) -> List[ReplenishmentRequest]:
        out = [ReplenishmentRequest.from_row(r) for r in self.store.load_all(Table.REPLENISHMENT)]
        if status is not None:
            out = [r for r in out if r.status == status]
        return out
