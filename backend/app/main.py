"""
FastAPI app entrypoint.

Notifications for the signals platform: in-app feed with read state, live change feed,
and device push fan-out via Expo.
"""
import logging
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Load .env from backend/ before any app code
load_dotenv(Path(__file__).resolve().parent.parent / ".env")

from app.api.routes import notifications, push
from app.config import settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(
        "Notifications backend ready (push gateway %s, batch size %s)",
        settings.expo_push_url,
        settings.push_batch_size,
    )
    yield


app = FastAPI(title="Signals Notifications", version="0.1.0", lifespan=lifespan)

# CORS: CORS_ORIGINS env (comma-separated); "*" by default since the push function is public
_cors_origins = settings.cors_origin_list()
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials="*" not in _cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(notifications.router, tags=["notifications"])
app.include_router(push.router, tags=["push"])


@app.get("/", include_in_schema=False)
def root():
    """Root: point to API docs and health."""
    return {"message": "Signals Notifications API", "docs": "/docs", "health": "/health"}


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
