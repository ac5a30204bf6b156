from __future__ import annotations

from collections import Counter

import pytest

from clinic.errors import (
    AlreadyDecided,
    AppointmentNotFound,
    InvalidTransition,
    SlotConflict,
    SlotUnavailable,
)
from clinic.schema import Appointment, AppointmentStatus, SlotStatus
from clinic.services.store import Table

from .conftest import DAY, FIRST, SECOND, confirmed_appointment


def _slot_status(svc, slot, doctor_id="D001", date=DAY):
    return {s.slot: s.status for s in svc.availability.view_schedule(doctor_id, date)}.get(slot)


def _active_per_slot(svc):
    rows = [Appointment.from_row(r) for r in svc.store.load_all(Table.APPOINTMENT)]
    return Counter((a.doctor_id, a.date, a.time_slot) for a in rows if a.is_active)


def test_request_accept_then_slot_is_taken(services):
    services.availability.set_availability("D001", DAY, [FIRST, SECOND])

    appt = services.appointments.request_appointment("D001", "P1001", DAY, FIRST)
    assert appt.status == AppointmentStatus.PENDING
    assert _slot_status(services, FIRST) == SlotStatus.AVAILABLE

    result = services.appointments.accept(appt.appointment_id)
    assert result.appointment.status == AppointmentStatus.CONFIRMED
    assert result.auto_cancelled == []
    assert _slot_status(services, FIRST) == SlotStatus.BOOKED

    with pytest.raises(SlotUnavailable):
        services.appointments.request_appointment("D001", "P1002", DAY, FIRST)
    assert services.availability.view_availability("D001", DAY) == [SECOND]


def test_ids_are_sequential(services):
    services.availability.set_availability("D001", DAY, [FIRST, SECOND])
    a = services.appointments.request_appointment("D001", "P1001", DAY, FIRST)
    b = services.appointments.request_appointment("D001", "P1002", DAY, SECOND)
    assert (a.appointment_id, b.appointment_id) == ("A1", "A2")


def test_request_needs_an_available_slot(services):
    with pytest.raises(SlotUnavailable):
        services.appointments.request_appointment("D001", "P1001", DAY, FIRST)
    assert services.store.load_all(Table.APPOINTMENT) == []


def test_one_open_request_per_slot(services):
    services.availability.set_availability("D001", DAY, [FIRST])
    services.appointments.request_appointment("D001", "P1001", DAY, FIRST)
    with pytest.raises(SlotUnavailable):
        services.appointments.request_appointment("D001", "P1002", DAY, FIRST)
    assert max(_active_per_slot(services).values()) == 1


def test_accept_twice_fails_without_side_effects(services):
    appt_id = confirmed_appointment(services)
    appts_before = services.store.path(Table.APPOINTMENT).read_bytes()
    slots_before = services.store.path(Table.AVAILABILITY).read_bytes()

    with pytest.raises(AlreadyDecided):
        services.appointments.accept(appt_id)
    with pytest.raises(AlreadyDecided):
        services.appointments.decline(appt_id)

    assert services.store.path(Table.APPOINTMENT).read_bytes() == appts_before
    assert services.store.path(Table.AVAILABILITY).read_bytes() == slots_before


def test_decline_releases_and_is_final(services):
    services.availability.set_availability("D001", DAY, [FIRST])
    appt = services.appointments.request_appointment("D001", "P1001", DAY, FIRST)

    declined = services.appointments.decline(appt.appointment_id)
    assert declined.status == AppointmentStatus.CANCELLED
    assert _slot_status(services, FIRST) == SlotStatus.AVAILABLE

    with pytest.raises(AlreadyDecided):
        services.appointments.decline(appt.appointment_id)
    with pytest.raises(AlreadyDecided):
        services.appointments.accept(appt.appointment_id)

    # the slot can be requested again
    again = services.appointments.request_appointment("D001", "P1002", DAY, FIRST)
    assert again.status == AppointmentStatus.PENDING


def test_accept_cancels_competing_pending_requests(services):
    services.availability.set_availability("D001", DAY, [FIRST])
    # two open requests for one slot, as left behind by older data
    services.store.save_all(Table.APPOINTMENT, [
        Appointment(appointment_id="A1", doctor_id="D001", patient_id="P1001", date=DAY, time_slot=FIRST).to_row(),
        Appointment(appointment_id="A2", doctor_id="D001", patient_id="P1002", date=DAY, time_slot=FIRST).to_row(),
    ])

    result = services.appointments.accept("A2")
    assert result.auto_cancelled == ["A1"]
    assert services.appointments.status("A1") == AppointmentStatus.CANCELLED
    assert services.appointments.status("A2") == AppointmentStatus.CONFIRMED
    assert max(_active_per_slot(services).values()) == 1


def test_accept_fails_when_doctor_withdrew_the_slot(services):
    services.availability.set_availability("D001", DAY, [FIRST])
    appt = services.appointments.request_appointment("D001", "P1001", DAY, FIRST)
    services.availability.set_availability("D001", DAY, [])

    with pytest.raises(SlotConflict):
        services.appointments.accept(appt.appointment_id)
    assert services.appointments.status(appt.appointment_id) == AppointmentStatus.PENDING


def test_cancel(services):
    appt_id = confirmed_appointment(services)
    cancelled = services.appointments.cancel(appt_id)
    assert cancelled.status == AppointmentStatus.CANCELLED
    assert _slot_status(services, FIRST) == SlotStatus.AVAILABLE

    with pytest.raises(InvalidTransition):
        services.appointments.cancel(appt_id)


def test_cancel_completed_is_invalid(services):
    appt_id = confirmed_appointment(services)
    services.store.update_by_key(Table.APPOINTMENT, appt_id, {"status": "COMPLETED"})
    with pytest.raises(InvalidTransition):
        services.appointments.cancel(appt_id)
    with pytest.raises(InvalidTransition):
        services.appointments.reschedule(appt_id, DAY, SECOND)


def test_reschedule_moves_a_confirmed_booking(services):
    services.availability.set_availability("D001", DAY, [FIRST, SECOND])
    appt_id = confirmed_appointment(services)

    new = services.appointments.reschedule(appt_id, DAY, SECOND)
    assert new.appointment_id != appt_id
    assert (new.doctor_id, new.patient_id, new.time_slot) == ("D001", "P1001", SECOND)
    assert new.status == AppointmentStatus.PENDING
    assert services.appointments.status(appt_id) == AppointmentStatus.CANCELLED
    assert _slot_status(services, FIRST) == SlotStatus.AVAILABLE
    assert _slot_status(services, SECOND) == SlotStatus.AVAILABLE


def test_reschedule_to_a_taken_slot_leaves_the_booking_alone(services):
    services.availability.set_availability("D001", DAY, [FIRST, SECOND])
    mine = confirmed_appointment(services, patient_id="P1001", slot=FIRST)
    confirmed_appointment(services, patient_id="P1002", slot=SECOND)

    with pytest.raises(SlotUnavailable):
        services.appointments.reschedule(mine, DAY, SECOND)
    with pytest.raises(SlotUnavailable):
        services.appointments.reschedule(mine, "2024-01-11", FIRST)

    assert services.appointments.status(mine) == AppointmentStatus.CONFIRMED
    assert _slot_status(services, FIRST) == SlotStatus.BOOKED


def test_reschedule_to_the_same_slot_is_a_no_op(services):
    appt_id = confirmed_appointment(services)
    same = services.appointments.reschedule(appt_id, DAY, "9:00-9:30")
    assert same.appointment_id == appt_id
    assert same.status == AppointmentStatus.CONFIRMED


def test_unknown_appointment(services):
    for op in (services.appointments.accept, services.appointments.decline,
               services.appointments.cancel, services.appointments.get):
        with pytest.raises(AppointmentNotFound):
            op("A404")


def test_schedule_queries(services):
    services.availability.set_availability("D001", DAY, [FIRST, SECOND])
    a1 = confirmed_appointment(services, patient_id="P1001", slot=SECOND)
    a2 = confirmed_appointment(services, patient_id="P1002", slot=FIRST)
    confirmed_appointment(services, patient_id="P1001", date="2024-01-11", slot=FIRST)
    services.availability.set_availability("D001", "2024-01-12", [FIRST])
    services.appointments.request_appointment("D001", "P1002", "2024-01-12", FIRST)

    upcoming = services.appointments.upcoming_for_doctor("D001")
    assert [a.appointment_id for a in upcoming][:2] == [a2, a1]
    assert len(upcoming) == 3
    assert [a.appointment_id for a in services.appointments.for_doctor_on("D001", DAY)] == [a2, a1]
    assert len(services.appointments.pending_for_doctor("D001")) == 1
    assert {a.patient_id for a in services.appointments.list_for_patient("P1001")} == {"P1001"}
    assert len(services.appointments.list_for_patient("P1001")) == 2
