# clinic/__init__.py
from typing import List
from fastapi import APIRouter

def get_routers() -> List[APIRouter]:
    from .routes.scheduling import router as scheduling_router
    from .routes.records import router as records_router
    from .routes.pharmacy import router as pharmacy_router
    return [scheduling_router, records_router, pharmacy_router]
