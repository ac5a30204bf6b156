# clinic/state.py
from __future__ import annotations

import threading
from typing import Optional

from .services import ClinicServices, build_services

# one process-wide set of services that all routers share
_SERVICES: Optional[ClinicServices] = None
_INIT_LOCK = threading.Lock()


def get_services() -> ClinicServices:
    global _SERVICES
    if _SERVICES is None:
        with _INIT_LOCK:
            if _SERVICES is None:
                _SERVICES = build_services()
    return _SERVICES


def set_services(services: Optional[ClinicServices]) -> None:
    """Swap the shared services (tests point them at a scratch data dir)."""
    global _SERVICES
    with _INIT_LOCK:
        _SERVICES = services
