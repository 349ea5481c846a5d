"""NAPWATCH — API Dependencies.

The engine is built in the application lifespan and kept on ``app.state``;
endpoints receive it through FastAPI dependency injection.
"""

from fastapi import HTTPException, Request

from app.analyzer.pipeline import AuditEngine


def get_engine(request: Request) -> AuditEngine:
    """FastAPI dependency that yields the process's AuditEngine."""
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        raise HTTPException(status_code=503, detail="Audit engine not initialised")
    return engine
