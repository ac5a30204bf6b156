from __future__ import annotations

import threading
import time

from clinic import state
from clinic.services import build_services


def test_concurrent_first_calls_share_one_service_set(tmp_path, monkeypatch):
    built = []

    def slow_build():
        time.sleep(0.05)
        svc = build_services(tmp_path / "data")
        built.append(svc)
        return svc

    monkeypatch.setattr(state, "build_services", slow_build)
    state.set_services(None)
    seen = []
    try:
        threads = [threading.Thread(target=lambda: seen.append(state.get_services())) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
    finally:
        state.set_services(None)

    assert len(built) == 1
    assert all(s is built[0] for s in seen)
