from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from paycycle import database
from paycycle.core.errors import PayrollError
from paycycle.core.logging import configure_logging
from paycycle.models import (  # noqa: F401
    balance_audit_entry,
    employee,
    pay_period,
    payment_detail,
    payroll_cycle_setting,
    payroll_item,
)
from paycycle.routers.auth import router as auth_router
from paycycle.routers.employees import router as employees_router
from paycycle.routers.payroll import router as payroll_router
from paycycle.services.ledger_immutability import install_ledger_immutability

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    database.configure_database()
    install_ledger_immutability(database.engine)
    yield


app = FastAPI(
    title="Paycycle",
    lifespan=lifespan,
)


@app.exception_handler(PayrollError)
async def payroll_error_handler(request: Request, exc: PayrollError):
    logger.info(
        "Payroll request rejected",
        extra={"code": exc.code, "path": request.url.path, "detail": exc.message},
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code},
    )


@app.middleware("http")
async def catch_unhandled_exceptions(request: Request, call_next):
    try:
        return await call_next(request)
    except Exception:
        logger.exception("Unhandled exception")
        return JSONResponse(status_code=500, content={"detail": "Internal Server Error"})


app.include_router(auth_router)
app.include_router(employees_router)
app.include_router(payroll_router)


@app.get("/")
def root():
    return {"status": "Paycycle running"}


@app.get("/health")
def health():
    return {
        "status": "ok",
        "version": "1.0.0",
    }
