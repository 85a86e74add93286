"""API dependencies"""

from typing import Generator

from fastapi import HTTPException, Request
from sqlalchemy.orm import Session

from marketsync.core.db import SessionLocal
from marketsync.services.scheduler import SyncScheduler


def get_db() -> Generator[Session, None, None]:
    """Database dependency"""
    with SessionLocal() as db:
        yield db


def get_scheduler(request: Request) -> SyncScheduler:
    """The process-wide scheduler created in the app lifespan."""
    scheduler = getattr(request.app.state, "scheduler", None)
    if scheduler is None:
        raise HTTPException(status_code=503, detail="Sync scheduler is not available")
    return scheduler


def get_optional_scheduler(request: Request) -> SyncScheduler | None:
    return getattr(request.app.state, "scheduler", None)
