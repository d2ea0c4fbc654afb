"""
Point d'entrée principal de l'API locale BunkMate.
Démarrage : uvicorn bunkmate.main:app --reload
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from bunkmate.config import settings
from bunkmate.database import init_db
from bunkmate.routers import attendance, records
from bunkmate.scheduler import start_scheduler, stop_scheduler

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Cycle de vie : crée les tables locales, démarre et arrête la synchronisation."""
    init_db()
    if settings.SYNC_ENABLED:
        start_scheduler()
    yield
    stop_scheduler()


app = FastAPI(
    title="BunkMate API",
    description="Suivi des présences étudiant : réconciliation enseignant / étudiant et cache hors-ligne",
    version="2.0.1",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
    lifespan=lifespan,
)

app.include_router(attendance.router)
app.include_router(records.router)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Journalise les exceptions non gérées et renvoie une réponse 500 générique."""
    logger.error("Exception non gérée : %s", exc, exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Une erreur interne est survenue."},
    )


@app.get("/api/health", tags=["Santé"])
def health_check():
    """Vérifie que l'API est opérationnelle."""
    return {"status": "ok", "service": "BunkMate API", "version": "2.0.1"}
