import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from .config import settings
from .database import SessionLocal
from .redis_client import redis_client
from .routers import bookings
from .services.expiry_reaper import ExpiryReaper

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    reaper = ExpiryReaper(SessionLocal)
    app.state.expiry_reaper = reaper
    if settings.reaper_enabled:
        reaper.start()
    try:
        yield
    finally:
        await reaper.stop()


app = FastAPI(title="Hospital Booking API", lifespan=lifespan)
app.include_router(bookings.router)


@app.get("/health")
def health():
    db_ok = True
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.exception("Database health check failed")
        db_ok = False
    finally:
        db.close()

    try:
        redis_ok = bool(redis_client.ping())
    except RedisError:
        redis_ok = False

    return {"database": db_ok, "redis": redis_ok}
