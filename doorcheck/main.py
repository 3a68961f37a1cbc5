"""Doorcheck ticketing service."""
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from doorcheck.core.config import settings
from doorcheck.core.database import create_db_and_tables
from doorcheck.core.scheduler import shutdown_scheduler, start_scheduler
from doorcheck.routes import attendees, events, scan, share, sync

# Configure logging
settings.log_dir.mkdir(parents=True, exist_ok=True)
log_file = settings.log_dir / "latest.log"

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    filename=str(log_file),
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown lifecycle."""
    # Startup
    logger.info("Starting Doorcheck")
    create_db_and_tables()
    start_scheduler()
    yield
    # Shutdown
    shutdown_scheduler()
    logger.info("Doorcheck shut down")


app = FastAPI(
    title=settings.app_name,
    description="Event ticketing: roster import, ticket issuance and at-most-once admission across scanning devices",
    version="0.1.0",
    lifespan=lifespan,
)

# Configure CORS for scanner devices on other origins
origins = (
    ["*"]
    if settings.allowed_origins == "*"
    else [o.strip() for o in settings.allowed_origins.split(",")]
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(events.router)
app.include_router(attendees.router)
app.include_router(scan.router)
app.include_router(sync.router)
app.include_router(share.router)


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy", "app": settings.app_name}


def run():
    """Serve the app with uvicorn on the configured host and port."""
    uvicorn.run(app, host=settings.host, port=settings.port)
