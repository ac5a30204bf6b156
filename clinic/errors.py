# clinic/errors.py
from __future__ import annotations


class ClinicError(Exception):
    """Base for every failure the core reports back to its callers."""

    status_code = 400
    code = "clinic_error"

    def __init__(self, message: str = ""):
        super().__init__(message or self.code)
        self.message = message or self.code


class NotFound(ClinicError):
    status_code = 404
    code = "not_found"


class AppointmentNotFound(NotFound):
    code = "appointment_not_found"


class OutcomeNotFound(NotFound):
    code = "outcome_not_found"


class PatientNotFound(NotFound):
    code = "patient_not_found"


class MedicineNotFound(NotFound):
    code = "medicine_not_found"


class ReplenishmentNotFound(NotFound):
    code = "replenishment_not_found"


class BillNotFound(NotFound):
    code = "bill_not_found"


class InvalidTransition(ClinicError):
    status_code = 409
    code = "invalid_transition"


class AlreadyDecided(InvalidTransition):
    code = "already_decided"


class SlotConflict(ClinicError):
    status_code = 409
    code = "slot_conflict"


class SlotUnavailable(ClinicError):
    status_code = 409
    code = "slot_unavailable"


class InvalidSlot(ClinicError):
    status_code = 422
    code = "invalid_slot"


class InsufficientStock(ClinicError):
    status_code = 409
    code = "insufficient_stock"


class AlreadyDispensed(ClinicError):
    status_code = 409
    code = "already_dispensed"


class OutcomeAlreadyRecorded(ClinicError):
    status_code = 409
    code = "outcome_already_recorded"


class DateMismatch(ClinicError):
    status_code = 422
    code = "date_mismatch"


class ValidationFailed(ClinicError):
    status_code = 422
    code = "validation_failed"


class StoreUnavailable(ClinicError):
    status_code = 503
    code = "store_unavailable"


class CorruptRecord(StoreUnavailable):
    """A stored row no longer parses (bad stock count, unknown state, ...)."""

    code = "corrupt_record"
