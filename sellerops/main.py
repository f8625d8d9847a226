# sellerops/main.py

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from sellerops.config import CORS_ORIGINS, LOG_LEVEL
from sellerops.db import Base, db_ping, engine
from sellerops.errors import CarrierTrackingError, MalformedEntityError
from sellerops.ingest_routes import router as ingest_router
from sellerops.logging_setup import setup_logging
from sellerops.status_routes import router as status_router
from sellerops.tracking_routes import router as tracking_router
from sellerops.workspace_routes import router as workspace_router

setup_logging(LOG_LEVEL)
_logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # no migrations yet: create missing tables on boot
    Base.metadata.create_all(bind=engine)
    _logger.info("Seller Ops API started (cors=%s)", CORS_ORIGINS)
    yield


app = FastAPI(title="Seller Ops API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_origin_regex=r"^https:\/\/.*\.(github\.dev|app\.github\.dev)$",
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(workspace_router)
app.include_router(ingest_router)
app.include_router(status_router)
app.include_router(tracking_router)


@app.exception_handler(MalformedEntityError)
async def malformed_entity_handler(request: Request, exc: MalformedEntityError):
    return JSONResponse(status_code=422, content={"detail": str(exc), "field": exc.field})


@app.exception_handler(CarrierTrackingError)
async def carrier_tracking_handler(request: Request, exc: CarrierTrackingError):
    _logger.warning("Carrier tracking failed on %s: %s", request.url.path, exc)
    return JSONResponse(
        status_code=502,
        content={"detail": str(exc), "carrier": exc.carrier, "upstream_status": exc.status_code},
    )


@app.get("/")
def home():
    return {"status": "ok", "message": "Seller Ops API is running"}


@app.get("/health")
def health():
    return {"status": "ok", "db": "ok" if db_ping() == 1 else "down"}
