import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware

# Import routers
from cashledger.api.routes import cashbook, email, notifications, opening_balance, storage
from cashledger.core.config import CORS_ORIGINS
from cashledger.core.events import EventBus
from cashledger.core.exceptions import LedgerError
from cashledger.core.logging_config import configure_logging
from cashledger.db.get_db import SessionLocal, init_db
from cashledger.services.notifications import NotificationFanout
from cashledger.utils.error_codes import HTTP_STATUS_TO_ERROR_CODE
from cashledger.utils.helpers import error_response

logger = logging.getLogger("cashledger.main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    init_db()

    event_bus = EventBus()
    fanout = NotificationFanout(SessionLocal)
    fanout.subscribe(event_bus)
    app.state.event_bus = event_bus
    app.state.fanout = fanout
    logger.info("Cashbook ledger started")
    try:
        yield
    finally:
        event_bus.close()
        logger.info("Cashbook ledger stopped")


app = FastAPI(
    title="Cashbook Ledger API",
    description="Branch cash transaction ledger: vouchers, verification, running balances and notifications",
    version="1.0.0",
    lifespan=lifespan,
)

# --- CORS Middleware ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

API_PREFIX = "/api/v1"

# Root route
@app.get("/")
def root():
    return {"success": True, "message": "Welcome to the cashbook ledger API!", "data": None}

# Include routers
app.include_router(cashbook.router, prefix=f"{API_PREFIX}/cashbook", tags=["Cashbook"])
app.include_router(notifications.router, prefix=f"{API_PREFIX}/notifications", tags=["Notifications"])
app.include_router(opening_balance.router, prefix=f"{API_PREFIX}/opening-balance", tags=["Opening Balance"])
app.include_router(storage.router, prefix=f"{API_PREFIX}/storage", tags=["Storage"])
app.include_router(email.router, prefix=f"{API_PREFIX}/email", tags=["Email"])


@app.exception_handler(LedgerError)
async def ledger_exception_handler(request: Request, exc: LedgerError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(exc.code, exc.message, exc.details),
    )

@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    error_code = HTTP_STATUS_TO_ERROR_CODE.get(exc.status_code, "SERVER_ERROR")
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(error_code, exc.detail),
    )

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=422,
        content=error_response(
            HTTP_STATUS_TO_ERROR_CODE.get(422, "VALIDATION_ERROR"),
            "Invalid request: Please send the correct content type and required fields.",
            jsonable_encoder(exc.errors()),
        ),
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000)
