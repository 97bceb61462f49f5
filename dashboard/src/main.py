import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from dashboard.src.config import get_settings
from dashboard.src.db.database import init_db
from dashboard.src.routes import health_router, pipelines_router, webhooks_router

settings = get_settings()
logger = logging.getLogger(__name__)

def configure_logging(level: str = "INFO"):
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    configure_logging(settings.log_level)
    if settings.auto_create_tables:
        await init_db()
    logger.info("Starting pipeline dashboard API")
    yield
    # Shutdown
    logger.info("Shutting down pipeline dashboard API")

app = FastAPI(
    title="Pipeline Dashboard",
    description="GitHub Actions workflow run dashboard",
    version="0.1.0",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type"],
)

# Include routers
app.include_router(health_router)
app.include_router(webhooks_router)
app.include_router(pipelines_router, prefix="/api")

@app.get("/")
async def root():
    return {
        "name": "Pipeline Dashboard",
        "version": "0.1.0",
        "docs": "/docs"
    }

def run():
    import uvicorn

    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
