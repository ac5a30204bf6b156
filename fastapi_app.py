from __future__ import annotations

import logging
import os

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from clinic import get_routers
from clinic.config import APP_TITLE
from clinic.errors import ClinicError, StoreUnavailable
from clinic.state import get_services

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(name)s - %(message)s")
logger = logging.getLogger(__name__)

app = FastAPI(title=APP_TITLE)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # tighten if needed
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ClinicError)
async def clinic_error_handler(request: Request, exc: ClinicError):
    if isinstance(exc, StoreUnavailable):
        logger.error(f"{request.method} {request.url.path}: {exc.message}")
    else:
        logger.warning(f"{request.method} {request.url.path} rejected: {exc.code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.code, "detail": exc.message})


@app.get("/health")
async def health():
    return {"ok": True, "app": APP_TITLE, "data_dir": str(get_services().store.data_dir)}


# Mount all routers from clinic/
for router in get_routers():
    app.include_router(router)

if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", "5000"))
    logger.info(f"Serving {APP_TITLE} on http://localhost:{port} (docs at /docs)")
    uvicorn.run("fastapi_app:app", host="0.0.0.0", port=port, reload=True)
