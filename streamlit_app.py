from __future__ import annotations

import os
from datetime import date
from typing import Any, Dict

import requests
import streamlit as st

from clinic.utils import response_message

# -----------------------------
# Config
# -----------------------------
FASTAPI_URL = os.getenv("FASTAPI_URL", "http://localhost:5000")

st.set_page_config(page_title="Clinic Front Desk", page_icon="🏥", layout="centered")
st.title("🏥 Clinic Front Desk")


# -----------------------------
# Helpers
# -----------------------------
def call_api(path: str, params: Dict[str, Any] | None = None, method: str = "GET", json: Dict[str, Any] | None = None):
    url = f"{FASTAPI_URL}{path}"
    if method.upper() == "GET":
        r = requests.get(url, params=params, timeout=20)
    elif method.upper() == "PUT":
        r = requests.put(url, params=params, json=json, timeout=30)
    else:
        r = requests.post(url, params=params, json=json, timeout=30)
    return r


def show(r: requests.Response) -> None:
    """Render a response; core errors come back as {"error", "detail"}."""
    if not r.ok:
        st.error(response_message(r))
        return
    st.success("Done")
    try:
        st.json(r.json())
    except ValueError:
        st.write(r.text)


# -----------------------------
# Sidebar: server health
# -----------------------------
with st.sidebar:
    st.subheader("Server")
    try:
        h = call_api("/health").json()
        st.success("API ✓")
        st.caption(h)
    except requests.RequestException as e:
        st.error(f"API not reachable: {e}")

patient_tab, doctor_tab, pharmacy_tab = st.tabs(["Patient", "Doctor", "Pharmacy"])

# -----------------------------
# Patient
# -----------------------------
with patient_tab:
    doctor_id = st.text_input("Doctor ID", key="p_doctor")
    day = st.date_input("Date", value=date.today(), key="p_date").isoformat()
    if doctor_id:
        slots = call_api("/availability", params={"doctor_id": doctor_id, "date": day}).json().get("slots", [])
        if slots:
            slot = st.selectbox("Open slots", slots)
            patient_id = st.text_input("Patient ID", key="p_patient")
            if st.button("Request appointment") and patient_id:
                show(call_api("/appointments", method="POST", json={
                    "doctor_id": doctor_id, "patient_id": patient_id, "date": day, "slot": slot,
                }))
        else:
            st.info("No open slots for this doctor/date.")

    appt_id = st.text_input("Appointment ID to cancel", key="p_cancel")
    if st.button("Cancel appointment") and appt_id:
        show(call_api(f"/appointments/{appt_id}/cancel", method="POST"))

# -----------------------------
# Doctor
# -----------------------------
with doctor_tab:
    me = st.text_input("Your doctor ID", key="d_id")
    if me:
        day = st.date_input("Schedule date", value=date.today(), key="d_date").isoformat()
        grid = call_api("/availability/grid").json().get("slots", [])
        current = call_api("/availability", params={"doctor_id": me, "date": day}).json().get("slots", [])
        chosen = st.multiselect("Available slots", grid, default=[s for s in current if s in grid])
        if st.button("Save availability"):
            show(call_api("/availability", method="PUT", json={"doctor_id": me, "date": day, "slots": chosen}))

        st.subheader("Requests")
        pending = call_api(f"/doctors/{me}/appointments", params={"status": "pending"}).json().get("appointments", [])
        for a in pending:
            c1, c2, c3 = st.columns([3, 1, 1])
            c1.write(f"{a['appointment_id']} · {a['patient_id']} · {a['date']} {a['time_slot']}")
            if c2.button("Accept", key=f"acc_{a['appointment_id']}"):
                show(call_api(f"/appointments/{a['appointment_id']}/accept", method="POST"))
            if c3.button("Decline", key=f"dec_{a['appointment_id']}"):
                show(call_api(f"/appointments/{a['appointment_id']}/decline", method="POST"))

        st.subheader("Record outcome")
        with st.form("outcome"):
            oid = st.text_input("Appointment ID")
            odate = st.text_input("Appointment date (YYYY-MM-DD)")
            diagnosis = st.text_input("Diagnosis")
            medicine = st.selectbox("Prescription", ["NA", "Paracetamol", "Ibuprofen", "Amoxicillin"])
            qty = st.number_input("Quantity", min_value=0, step=1)
            plan = st.text_input("Treatment plan")
            service = st.text_input("Type of service", value="Consultation")
            notes = st.text_area("Notes")
            if st.form_submit_button("Record") and oid:
                show(call_api(f"/appointments/{oid}/outcome", method="POST", json={
                    "diagnosis": diagnosis, "medicine": medicine, "quantity": int(qty),
                    "treatment_plan": plan, "date": odate, "service_type": service, "notes": notes,
                }))

# -----------------------------
# Pharmacy
# -----------------------------
with pharmacy_tab:
    st.subheader("Inventory")
    inv = call_api("/inventory").json().get("medicines", [])
    st.table(inv)

    rx = st.text_input("Appointment ID to dispense", key="ph_rx")
    if st.button("Dispense") and rx:
        show(call_api(f"/prescriptions/{rx}/dispense", method="POST"))

    st.subheader("Replenishment")
    med = st.selectbox("Medicine", [m["name"] for m in inv] or ["-"])
    qty = st.number_input("Quantity", min_value=1, step=1, key="ph_qty")
    if st.button("Submit request") and med != "-":
        show(call_api("/replenishments", method="POST", json={"medicine": med, "quantity": int(qty)}))
