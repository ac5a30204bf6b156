from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Dict

from dotenv import load_dotenv

load_dotenv()

APP_TITLE = os.getenv("APP_TITLE", "Clinic Operations API")

DATA_DIR = Path(os.getenv("CLINIC_DATA_DIR", "data"))

# Flat tables (one CSV per table, rewritten wholesale on every mutation)
APPOINTMENT_CSV = "Appointment.csv"
AVAILABILITY_CSV = "DoctorAvailability.csv"
APPOINTMENT_RECORD_CSV = "AppointmentRecord.csv"
PATIENT_CSV = "Patient_List.csv"
MEDICINE_CSV = "Medicine_List.csv"
REPLENISHMENT_CSV = "ReplenishmentRequest.csv"
BILL_CSV = "Bill.csv"

# Daily slot grid
SLOT_START = os.getenv("CLINIC_SLOT_START", "09:00")
SLOT_END = os.getenv("CLINIC_SLOT_END", "17:00")
SLOT_MINUTES = int(os.getenv("CLINIC_SLOT_MINUTES", "30"))

# 0 disables automatic replenishment requests on low stock
AUTO_REPLENISH_QTY = int(os.getenv("CLINIC_AUTO_REPLENISH_QTY", "0"))

DEFAULT_MEDICINE_PRICES: Dict[str, float] = {
    "paracetamol": 0.125,
    "ibuprofen": 0.50,
    "amoxicillin": 0.95,
}


def load_medicine_prices() -> Dict[str, float]:
    """
    Unit price per medicine name (lower-cased). CLINIC_MEDICINE_PRICES may hold a
    JSON object that overrides or extends the defaults.
    """
    prices = dict(DEFAULT_MEDICINE_PRICES)
    raw = os.getenv("CLINIC_MEDICINE_PRICES", "").strip()
    if raw:
        extra = json.loads(raw)
        prices.update({str(k).strip().lower(): float(v) for k, v in extra.items()})
    return prices
