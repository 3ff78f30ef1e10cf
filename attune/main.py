from fastapi import FastAPI, Depends
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from attune.db.base import get_db
from attune.core.config import settings
from attune.core.logging_config import setup_logging
from attune.routers import attunement as attunement_router
from attune.routers import chat as chat_router
from attune.routers import logs as logs_router
from attune.routers import vector as vector_router
from attune.routers import providers as providers_router
from attune.core.errors import (
    AttuneException,
    attune_exception_handler,
    validation_exception_handler,
    unhandled_exception_handler,
)

setup_logging()

app = FastAPI(
    title="Attune API",
    description=(
        "**Daily Attunement Synthesis Service**\n\n"
        "Combines a user's recent journal entries, retrieved by semantic search, "
        "with optional blueprint, health, cosmic and astrology data into one "
        "question/answer attunement per day.\n\n"
        "All error responses follow the `{code, message, details}` envelope."
    ),
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# --- CORS ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Exception handlers (most specific first) ---
app.add_exception_handler(AttuneException, attune_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

# --- Routers ---
app.include_router(attunement_router.router)
app.include_router(chat_router.router)
app.include_router(logs_router.router)
app.include_router(vector_router.router)
app.include_router(providers_router.router)


@app.get("/health", tags=["health"], summary="Health check")
def health(db: Session = Depends(get_db)):
    """
    Returns `{"status": "ok", "db": "ok"}` when both the API and the database
    are reachable. Returns HTTP 503 if the DB is down.
    """
    try:
        db.execute(text("SELECT 1"))
        db_status = "ok"
    except SQLAlchemyError:
        db_status = "unreachable"

    if db_status != "ok":
        return JSONResponse(
            status_code=503,
            content={"status": "error", "db": db_status},
        )
    return {"status": "ok", "db": "ok", "env": settings.APP_ENV}
