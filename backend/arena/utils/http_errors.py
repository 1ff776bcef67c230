"""Translate bracket service errors into HTTP errors."""
import logging

from fastapi import HTTPException
from sqlmodel import Session

from arena.services.bracket_errors import BracketError

logger = logging.getLogger(__name__)


def bracket_http_error(error: BracketError) -> HTTPException:
    return HTTPException(status_code=error.status_code, detail=error.message)


def internal_error(session: Session, action: str, error: Exception) -> HTTPException:
    """Roll back and wrap an unexpected failure as a 500."""
    session.rollback()
    logger.exception("Failed to %s", action)
    return HTTPException(status_code=500, detail=f"Failed to {action}: {str(error)}")
