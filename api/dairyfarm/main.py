import logging
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from .db import engine
from .errors import register_exception_handlers
from .routers import auth, chicken, cows, farms, feeds, health, milk, stats, users

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
CORS_ORIGINS = os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Dairy Farm Records API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in CORS_ORIGINS],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(auth.router, prefix="/auth", tags=["auth"])
app.include_router(users.router, prefix="/users", tags=["users"])
app.include_router(farms.router, prefix="/farms", tags=["farms"])
app.include_router(cows.router, prefix="/cows", tags=["cows"])
app.include_router(milk.router, prefix="/milk", tags=["milk"])
app.include_router(feeds.router, prefix="/feeds", tags=["feeds"])
app.include_router(health.router, prefix="/health", tags=["health"])
app.include_router(chicken.router, prefix="/chicken", tags=["chicken"])
app.include_router(stats.router, prefix="/stats", tags=["stats"])


@app.get("/healthz")
def healthz():
    """Health check endpoint."""
    return {"ok": True, "service": "dairyfarm-api"}


@app.get("/readyz")
def readyz():
    """Readiness check - verify database connectivity."""
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return {"ok": True, "db": "connected"}
    except Exception as e:
        logger.warning("Readiness check failed: %s", e)
        return {"ok": False, "db": "disconnected", "error": str(e)}
