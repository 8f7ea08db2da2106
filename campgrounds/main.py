# campgrounds/main.py
from __future__ import annotations

import asyncio
import logging
import os
from contextlib import asynccontextmanager, suppress
from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from campgrounds import crud, database
from campgrounds.database import Base, engine
from campgrounds.logging_config import configure_logging
from campgrounds.policy.params.store import get_policy
from campgrounds.routers.bookings import router as bookings_router
from campgrounds.routers.orders import router as orders_router
from campgrounds.routers.refunds import router as refunds_router

configure_logging()
logger = logging.getLogger(__name__)

APP_NAME = os.getenv("APP_NAME", "campgrounds-backend")
BOOKING_EXPIRE_INTERVAL_SECONDS = int(os.getenv("BOOKING_EXPIRE_INTERVAL_SECONDS", "3600"))


# --------------------------------------------------
# Booking expiry worker
# --------------------------------------------------
async def booking_expire_worker(interval_seconds: int) -> None:
    """Runs the CONFIRMED -> EXPIRED sweep every ``interval_seconds``."""
    while True:
        try:
            db = database.SessionLocal()
            try:
                expired = crud.expire_bookings(db)
            finally:
                db.close()
            if expired:
                logger.info("[AUTO_EXPIRE] expired=%s", expired)
        except Exception:
            # keep the worker alive across transient DB errors
            logger.exception("[AUTO_EXPIRE] sweep failed")
        await asyncio.sleep(interval_seconds)


@asynccontextmanager
async def lifespan(app: FastAPI):
    Base.metadata.create_all(bind=engine)
    # fail fast on a broken policy file
    get_policy()

    task = None
    if BOOKING_EXPIRE_INTERVAL_SECONDS > 0:
        task = asyncio.create_task(booking_expire_worker(BOOKING_EXPIRE_INTERVAL_SECONDS))

    yield

    if task is not None:
        task.cancel()
        with suppress(asyncio.CancelledError):
            await task


app = FastAPI(title="Campgrounds Backend", version="1.0.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=os.getenv("CORS_ALLOW_ORIGINS", "*").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
async def health() -> dict:
    """Readiness probe."""
    return {
        "status": "ok",
        "app": APP_NAME,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


app.include_router(orders_router)
app.include_router(bookings_router)
app.include_router(refunds_router)
