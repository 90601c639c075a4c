from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import kitadoc.models  # noqa: F401  (registers SQLModel tables)

from kitadoc.config import get_settings
from kitadoc.db import create_db_and_tables
from kitadoc.routers import children, health, teachers, users
from kitadoc.services.errors import PIIError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    create_db_and_tables()
    yield


app = FastAPI(
    title="KitaDoc",
    description="Kindergarten documentation backend with field-level PII encryption",
    version="0.1.0",
    lifespan=lifespan,
)

settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        f"https://{settings.domain}",
        "http://localhost:3000",
        "http://localhost:5173",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(PIIError)
async def pii_error_handler(request: Request, exc: PIIError) -> JSONResponse:
    # Messages name record type and field only, so they are safe to log.
    logger.warning("PII processing failed on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"detail": "Failed to process protected fields"})


app.include_router(health.router)
app.include_router(users.router)
app.include_router(teachers.router)
app.include_router(children.router)
