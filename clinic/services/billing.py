from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

from clinic.errors import BillNotFound, InvalidTransition
from clinic.schema import Bill, BillStatus
from clinic.services.store import RecordStore, Table

logger = logging.getLogger(__name__)


@dataclass
class BillingService:
    """Bills are created only by dispensing; this is the read/payment side."""

    store: RecordStore

    def get_bill(self, appointment_id: str) -> Bill:
        row = self.store.find_by_key(Table.BILL, appointment_id)
        if row is None:
            raise BillNotFound(f"no bill for appointment {appointment_id}")
        return Bill.from_row(row)

    def list_bills(self, status: Optional[BillStatus] = None) -> List[Bill]:
        out = [Bill.from_row(r) for r in self.store.load_all(Table.BILL)]
        if status is not None:
            out = [b for b in out if b.status == status]
        return out

    def pay_bill(self, appointment_id: str, feedback: Optional[str] = None) -> Bill:
        with self.store.transaction(Table.BILL) as tx:
            rows = tx.load(Table.BILL)
            row = next((r for r in rows if r.get("appointment_id") == appointment_id), None)
            if row is None:
                raise BillNotFound(f"no bill for appointment {appointment_id}")
            bill = Bill.from_row(row)
            if bill.status != BillStatus.PENDING:
                raise InvalidTransition(f"bill for {appointment_id} is already {bill.status.value}")
            row["status"] = BillStatus.PAID.value
            if feedback:
                row["feedback"] = feedback.strip()
            tx.stage(Table.BILL, rows)
        logger.info(f"Bill for {appointment_id} paid")
        return Bill.from_row(row)
