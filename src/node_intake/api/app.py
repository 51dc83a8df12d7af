"""FastAPI application for the Node Intake API."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from node_intake.api.routes.batches import router as batches_router
from node_intake.api.routes.decisions import router as decisions_router
from node_intake.api.routes.health import router as health_router
from node_intake.config.settings import get_settings
from node_intake.logging_config import configure_logging


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    configure_logging(json_output=settings.log_json, log_level=settings.log_level)
    yield


app = FastAPI(title="Node Intake API", version="0.1.0", lifespan=lifespan)

# CORS for the review UI dev server
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health_router)
app.include_router(batches_router)
app.include_router(decisions_router)
