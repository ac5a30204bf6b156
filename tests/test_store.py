from __future__ import annotations

import os
import threading

import pandas as pd
import pytest

from clinic.errors import NotFound, StoreUnavailable
from clinic.services import store as store_mod
from clinic.services.store import RecordStore, Table


def test_missing_table_is_reported_not_treated_as_empty(tmp_path):
    store = RecordStore(tmp_path)
    with pytest.raises(StoreUnavailable):
        store.load_all(Table.APPOINTMENT)


def test_provision_creates_headers_only(tmp_path):
    store = RecordStore(tmp_path)
    created = store.provision()
    assert set(created) == set(Table)
    assert store.load_all(Table.MEDICINE) == []
    header = store.path(Table.MEDICINE).read_text().splitlines()[0]
    assert header == "name,stock,low_stock_threshold"


def test_provision_leaves_existing_tables_alone(services):
    services.store.save_all(Table.MEDICINE, [{"name": "paracetamol", "stock": "10", "low_stock_threshold": "5"}])
    assert services.store.provision() == []
    assert len(services.store.load_all(Table.MEDICINE)) == 1


def test_fields_round_trip_as_text(services):
    rows = [{"appointment_id": "007", "diagnosis": "NA", "medicine": "NA", "quantity": "0",
             "prescription_status": "PENDING", "treatment_plan": "rest, fluids", "date": "2024-01-10",
             "service_type": "", "notes": ""}]
    services.store.save_all(Table.APPOINTMENT_RECORD, rows)
    assert services.store.load_all(Table.APPOINTMENT_RECORD) == rows


def test_find_and_update_by_key(services):
    services.store.save_all(Table.MEDICINE, [
        {"name": "paracetamol", "stock": "10", "low_stock_threshold": "5"},
        {"name": "ibuprofen", "stock": "3", "low_stock_threshold": "5"},
    ])
    assert services.store.find_by_key(Table.MEDICINE, "ibuprofen")["stock"] == "3"
    assert services.store.find_by_key(Table.MEDICINE, "aspirin") is None

    updated = services.store.update_by_key(Table.MEDICINE, "ibuprofen", {"stock": 8})
    assert updated["stock"] == "8"
    assert services.store.find_by_key(Table.MEDICINE, "ibuprofen")["low_stock_threshold"] == "5"

    with pytest.raises(NotFound):
        services.store.update_by_key(Table.MEDICINE, "aspirin", {"stock": 1})


def test_exception_inside_transaction_writes_nothing(services):
    services.store.save_all(Table.MEDICINE, [{"name": "paracetamol", "stock": "10", "low_stock_threshold": "5"}])
    before = services.store.path(Table.MEDICINE).read_bytes()

    with pytest.raises(ValueError):
        with services.store.transaction(Table.MEDICINE, Table.BILL) as tx:
            rows = tx.load(Table.MEDICINE)
            rows[0]["stock"] = "0"
            tx.stage(Table.MEDICINE, rows)
            raise ValueError("validation failed later in the sequence")

    assert services.store.path(Table.MEDICINE).read_bytes() == before


def test_loading_an_unlocked_table_is_refused(services):
    with services.store.transaction(Table.MEDICINE) as tx:
        with pytest.raises(RuntimeError):
            tx.load(Table.BILL)


def test_failed_staging_write_keeps_prior_contents(services, monkeypatch):
    services.store.save_all(Table.MEDICINE, [{"name": "paracetamol", "stock": "10", "low_stock_threshold": "5"}])
    before = services.store.path(Table.MEDICINE).read_bytes()

    def boom(self, *args, **kwargs):
        raise OSError("disk full")

    monkeypatch.setattr(pd.DataFrame, "to_csv", boom)
    with pytest.raises(StoreUnavailable):
        services.store.save_all(Table.MEDICINE, [])

    assert services.store.path(Table.MEDICINE).read_bytes() == before
    assert not [p for p in services.store.data_dir.iterdir() if p.name.startswith(".")]


def test_failed_commit_restores_tables_already_replaced(services, monkeypatch):
    services.store.save_all(Table.MEDICINE, [{"name": "paracetamol", "stock": "10", "low_stock_threshold": "5"}])
    med_before = services.store.path(Table.MEDICINE).read_bytes()
    bill_before = services.store.path(Table.BILL).read_bytes()

    real_replace = os.replace
    calls = {"n": 0}

    def flaky_replace(src, dst):
        calls["n"] += 1
        if calls["n"] == 2:
            raise OSError("rename failed")
        return real_replace(src, dst)

    monkeypatch.setattr(store_mod.os, "replace", flaky_replace)
    with pytest.raises(StoreUnavailable):
        with services.store.transaction(Table.MEDICINE, Table.BILL) as tx:
            tx.stage(Table.MEDICINE, [{"name": "paracetamol", "stock": "6", "low_stock_threshold": "5"}])
            tx.stage(Table.BILL, [{"appointment_id": "A1", "amount": "0.5", "status": "PENDING", "feedback": "na"}])

    assert services.store.path(Table.MEDICINE).read_bytes() == med_before
    assert services.store.path(Table.BILL).read_bytes() == bill_before
    assert not [p for p in services.store.data_dir.iterdir() if p.name.startswith(".")]


def test_read_modify_write_is_serialised(services):
    services.store.save_all(Table.MEDICINE, [{"name": "paracetamol", "stock": "0", "low_stock_threshold": "5"}])

    def bump():
        with services.store.transaction(Table.MEDICINE) as tx:
            rows = tx.load(Table.MEDICINE)
            rows[0]["stock"] = str(int(rows[0]["stock"]) + 1)
            tx.stage(Table.MEDICINE, rows)

    threads = [threading.Thread(target=bump) for _ in range(20)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert services.store.find_by_key(Table.MEDICINE, "paracetamol")["stock"] == "20"
