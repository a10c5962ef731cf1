# FILE: main.py
"""
Memoire Engine - FastAPI Application

Features:
- Version lifecycle for generated answer sets (create, freeze, clone, history, compare)
- Staleness detection against current company profile, requirements,
  reference documents and question wording
- Template sync analysis
- Two-phase batch generation (planning + per-question answers), inline or
  as a background job
"""
import logging
import os

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Load .env FIRST, config.settings reads the environment at import time
load_dotenv()

from config import settings  # noqa: E402
from memoire import __version__  # noqa: E402
from memoire.db import SessionLocal, init_db  # noqa: E402
from memoire.generation.registry import is_provider_available  # noqa: E402
from memoire.generation.router import router as generation_router  # noqa: E402
from memoire.jobs import queue  # noqa: E402
from memoire.versions.router import router as versions_router  # noqa: E402

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("memoire")

app = FastAPI(
    title="Memoire Engine",
    version=__version__,
    description="Versioned, freshness-tracked generation of tender answer sets",
)

# ====== CORS ======

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in os.getenv("MEMOIRE_CORS_ORIGINS", "http://localhost:3000").split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ====== STARTUP ======

@app.on_event("startup")
def on_startup():
    init_db()
    logger.info(f"[startup] Database ready at {settings.DATABASE_URL}")

    # Background work does not survive a restart
    db = SessionLocal()
    try:
        queue.recover_interrupted(db)
    finally:
        db.close()

    if not settings.API_TOKENS:
        logger.warning("[startup] MEMOIRE_API_TOKENS not set - every request will get 503")

    for stage in ("PLANNING", "ANSWER"):
        cfg = settings.get_stage_config(stage)
        status = "[OK]" if is_provider_available(cfg.provider) else "[X] unavailable"
        logger.info(f"[startup] {cfg} {status}")


# ====== ROUTERS ======

app.include_router(versions_router, prefix="/versions", tags=["Versions"])
app.include_router(generation_router, prefix="/generation", tags=["Generation"])


@app.get("/ping")
def ping():
    return {"status": "ok"}
