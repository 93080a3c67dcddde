import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import koperasi.models  # ensure models are registered
from koperasi.core.config import CORS_ORIGINS, LOG_FORMAT, LOG_LEVEL
from koperasi.core.exceptions import KoperasiError
from koperasi.core.logging import setup_logging
from koperasi.utils.database import engine, Base

from koperasi.routers import (
    loans_router,
    installments_router,
    reports_router,
    settings_router,
)

logger = logging.getLogger("koperasi")

app = FastAPI(title="Koperasi Loan Accounting API", version="1.0")

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(loans_router.router)
app.include_router(installments_router.router)
app.include_router(reports_router.router)
app.include_router(settings_router.router)


@app.exception_handler(KoperasiError)
def koperasi_error_handler(request: Request, exc: KoperasiError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": str(exc), "error": exc.__class__.__name__},
    )


@app.on_event("startup")
def on_startup():
    setup_logging(LOG_LEVEL, LOG_FORMAT)

    # DEV ONLY: migrations are not wired in yet
    Base.metadata.create_all(bind=engine)
    logger.info("Koperasi backend started")


@app.get("/")
def root():
    return {"message": "Koperasi backend is running"}
