# clinic/services/__init__.py
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from clinic import config
from .appointments import AppointmentService
from .availability import AvailabilityLedger
from .billing import BillingService
from .dispensing import DispensingService
from .outcomes import OutcomeService
from .replenishment import ReplenishmentService
from .store import RecordStore, Table


@dataclass
class ClinicServices:
    store: RecordStore
    availability: AvailabilityLedger
    appointments: AppointmentService
    outcomes: OutcomeService
    dispensing: DispensingService
    replenishment: ReplenishmentService
    billing: BillingService


def build_services(
    data_dir: Path | str = config.DATA_DIR,
    prices: Optional[Mapping[str, float]] = None,
    auto_replenish_qty: int = config.AUTO_REPLENISH_QTY,
    provision: bool = True,
) -> ClinicServices:
    store = RecordStore(data_dir)
    if provision:
        store.provision()
    ledger = AvailabilityLedger(store)
    return ClinicServices(
        store=store,
        availability=ledger,
        appointments=AppointmentService(store, ledger),
        outcomes=OutcomeService(store, ledger),
        dispensing=DispensingService(
            store,
            prices=config.load_medicine_prices() if prices is None else prices,
            auto_replenish_qty=auto_replenish_qty,
        ),
        replenishment=ReplenishmentService(store),
        billing=BillingService(store),
    )


__all__ = ["ClinicServices", "build_services", "RecordStore", "Table"]
