from typing import Any, Dict

from fastapi import APIRouter, Depends
from sqlmodel import Session

from arena.database import get_session
from arena.dependencies import get_sweeper
from arena.services.status_sweeper import StatusSweeper
from arena.services.tournament_status import sweep_tournament_statuses
from arena.utils.http_errors import internal_error

router = APIRouter()


@router.get("/scheduler/status")
def scheduler_status(sweeper: StatusSweeper = Depends(get_sweeper)) -> Dict[str, Any]:
    """State of the periodic tournament status sweep"""
    return sweeper.status()


@router.post("/scheduler/run")
def run_scheduler(
    session: Session = Depends(get_session),
    sweeper: StatusSweeper = Depends(get_sweeper),
) -> Dict[str, Any]:
    """Force a status check now"""
    try:
        updates = sweep_tournament_statuses(session)
    except Exception as e:
        raise internal_error(session, "check tournament statuses", e)
    sweeper.record(updates)
    return {"updated": len(updates), "updates": [u.to_dict() for u in updates]}
