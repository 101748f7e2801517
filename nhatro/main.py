# Application entrypoint: configures middleware, error rendering, startup routines and API routers.
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging
import os
import threading
import time

from .db import Base, engine
from .errors import ApiError
from .routes.auth import router as auth_router
from .routes.motels import router as motels_router
from .routes.contracts import router as contracts_router
from .routes.maintenance import router as maintenance_router
from .routes.appointments import router as appointments_router
from .routes.invoices import router as invoices_router
from .sweepers import mark_overdue_invoices

logger = logging.getLogger("nhatro.errors")

OVERDUE_SWEEP_SECONDS = int(os.getenv("OVERDUE_SWEEP_SECONDS", "300"))


def _start_overdue_sweeper(interval_seconds: int = 300) -> None:
    """
    Launch a daemon thread that periodically marks unpaid invoices past their due date OVERDUE.

    A failed run is logged and retried on the next interval.
    """
    sweeper_logger = logging.getLogger("nhatro.sweepers")

    def _loop() -> None:
        while True:
            time.sleep(interval_seconds)
            try:
                mark_overdue_invoices()
            except Exception:
                sweeper_logger.exception("sweeper.overdue_failed")

    t = threading.Thread(target=_loop, name="invoice-overdue-sweeper", daemon=True)
    t.start()


# Parse CORS origins from a comma-separated env var.
# '*' cannot be combined with allow_credentials=True, so it maps to the localhost dev origins.
def _parse_cors_origins(env_value: str | None) -> list[str]:
    default_dev_origins = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    if not env_value:
        return default_dev_origins

    origins = [o.strip() for o in env_value.split(",") if o.strip()]
    if "*" in origins:
        return default_dev_origins

    return origins


app = FastAPI(title="NhaTro API", version="0.1.0")
allow_list = _parse_cors_origins(os.getenv("CORS_ORIGINS"))

app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ApiError)
def handle_api_error(request: Request, exc: ApiError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("api.error", extra={"code": exc.code, "path": request.url.path})
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = [
        {"field": ".".join(str(p) for p in err.get("loc", ())), "message": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]
    body = {
        "success": False,
        "error": {"code": "VALIDATION_ERROR", "message": "Dữ liệu không hợp lệ", "details": details},
    }
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=body)


@app.on_event("startup")
def on_startup() -> None:
    # For local SQLite, auto-create tables; production DBs rely on Alembic migrations.
    if os.getenv("DATABASE_URL", "sqlite:///./nhatro.db").startswith("sqlite"):
        Base.metadata.create_all(bind=engine)
    _start_overdue_sweeper(interval_seconds=OVERDUE_SWEEP_SECONDS)


# Liveness endpoint for container orchestrators and uptime checks
@app.get("/healthz")
def healthz() -> dict:
    return {"status": "ok"}


app.include_router(auth_router, prefix="/api", tags=["auth"])
app.include_router(motels_router, prefix="/api", tags=["motels"])
app.include_router(contracts_router, prefix="/api", tags=["contracts"])
app.include_router(maintenance_router, prefix="/api", tags=["maintenance"])
app.include_router(appointments_router, prefix="/api", tags=["appointments"])
app.include_router(invoices_router, prefix="/api", tags=["invoices"])
