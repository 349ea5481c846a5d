"""NAPWATCH — FastAPI Application Entry Point.

Identity consistency audit engine: keeps the master NAP record, audits
published platform listings against it, scores, ranks fixes and alerts.
"""

import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.analyzer.pipeline import AuditEngine
from app.api.audit_routes import router as audit_router
from app.api.config_routes import router as config_router
from app.api.identity_routes import router as identity_router
from app.connectors.platforms.http_provider import HttpPlatformProvider
from app.core.logging import get_logger
from app.database import engine as db_engine, init_db, test_connection
from app.notify.sinks import build_default_sink
from app.scheduler.jobs import AuditScheduler
from app.storage.report_store import SQLModelReportStore

logger = get_logger("main")

IS_SERVERLESS = bool(
    os.environ.get("VERCEL") or os.environ.get("AWS_LAMBDA_FUNCTION_NAME")
)


def build_engine() -> AuditEngine:
    """Wire the production collaborators into one AuditEngine."""
    store = None
    if test_connection(db_engine):
        try:
            init_db(db_engine)
            store = SQLModelReportStore(db_engine)
        except Exception as e:
            logger.error(f"❌ Table creation failed: {e}")
    else:
        logger.error("❌ Database NOT connected — reports will not be persisted")

    audit_engine = AuditEngine(
        provider=HttpPlatformProvider(),
        sink=build_default_sink(),
        store=store,
    )
    if store is not None:
        audit_engine.load_history(store.recent(audit_engine.get_config().history_limit))
    return audit_engine


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle."""
    logger.info("🚀 NAPWATCH starting up...")
    logger.info(f"🌍 Environment: {'SERVERLESS' if IS_SERVERLESS else 'LOCAL'}")
    audit_engine = build_engine()
    scheduler = AuditScheduler(audit_engine)
    app.state.engine = audit_engine
    app.state.scheduler = scheduler
    if not IS_SERVERLESS:
        scheduler.start()
    yield
    if not IS_SERVERLESS:
        scheduler.stop()
    await audit_engine.close()
    logger.info("NAPWATCH shut down")


app = FastAPI(
    title="NAPWATCH",
    description="Identity consistency audits — compare published NAP data against the master record, score it, and rank the fixes.",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(audit_router)
app.include_router(identity_router)
app.include_router(config_router)


@app.get("/health", tags=["System"])
async def health_check():
    """Health check endpoint."""
    payload = {
        "status": "healthy",
        "service": "napwatch",
        "version": "1.0.0",
    }
    engine = getattr(app.state, "engine", None)
    if engine is not None:
        payload["audit"] = engine.get_health_status()
    return payload
