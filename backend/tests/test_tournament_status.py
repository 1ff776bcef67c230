"""Date-driven status calculation, forward-only sweep and completion."""
from datetime import datetime, timedelta

from sqlmodel import Session

from arena.models.tournament import BracketType, Tournament, TournamentStatus
from arena.services.tournament_status import (
    calculate_tournament_status,
    complete_tournament_if_finished,
    sweep_tournament_statuses,
)

NOW = datetime(2026, 6, 1, 12, 0, 0)


def _dates(reg_start_days, reg_end_days, start_days, end_days):
    def at(days):
        return None if days is None else NOW + timedelta(days=days)

    return at(reg_start_days), at(reg_end_days), at(start_days), at(end_days)


def test_calculate_status_from_dates():
    cases = [
        (_dates(1, 2, 3, 4), TournamentStatus.DRAFT),
        (_dates(-1, 2, 3, 4), TournamentStatus.REGISTRATION_OPEN),
        (_dates(-1, None, 3, None), TournamentStatus.REGISTRATION_OPEN),
        (_dates(-3, -1, 3, 4), TournamentStatus.REGISTRATION_CLOSED),
        (_dates(-3, -2, -1, 4), TournamentStatus.IN_PROGRESS),
        (_dates(-3, -2, -1, None), TournamentStatus.IN_PROGRESS),
        (_dates(-5, -4, -3, -1), TournamentStatus.COMPLETED),
    ]
    for dates, expected in cases:
        assert calculate_tournament_status(*dates, TournamentStatus.DRAFT, now=NOW) == expected


def test_completed_is_terminal():
    dates = _dates(1, 2, 3, 4)
    assert calculate_tournament_status(*dates, TournamentStatus.COMPLETED, now=NOW) == TournamentStatus.COMPLETED


def _tournament(session: Session, status, dates, is_active=True) -> Tournament:
    reg_start, reg_end, start, end = dates
    tournament = Tournament(
        name="Sweep",
        bracket_type=BracketType.SINGLE_ELIMINATION,
        max_teams=8,
        status=status,
        registration_start=reg_start,
        registration_end=reg_end,
        tournament_start=start,
        tournament_end=end,
        is_active=is_active,
    )
    session.add(tournament)
    session.commit()
    session.refresh(tournament)
    return tournament


def test_sweep_moves_forward_only(session):
    opening = _tournament(session, TournamentStatus.DRAFT, _dates(-1, 2, 3, 4))
    # A draw already started this one; dates still say registration is open
    started = _tournament(session, TournamentStatus.IN_PROGRESS, _dates(-1, 2, 3, 4))
    finished = _tournament(session, TournamentStatus.IN_PROGRESS, _dates(-5, -4, -3, -1))
    inactive = _tournament(session, TournamentStatus.DRAFT, _dates(-1, 2, 3, 4), is_active=False)

    updates = sweep_tournament_statuses(session, now=NOW)
    by_id = {u.tournament_id: u for u in updates}
    assert set(by_id) == {opening.id, finished.id}
    assert by_id[opening.id].new_status == "REGISTRATION_OPEN"
    assert by_id[opening.id].reason == "Registration period has started"
    assert by_id[finished.id].new_status == "COMPLETED"

    session.expire_all()
    assert session.get(Tournament, started.id).status == TournamentStatus.IN_PROGRESS
    assert session.get(Tournament, inactive.id).status == TournamentStatus.DRAFT

    assert sweep_tournament_statuses(session, now=NOW) == []


def test_completion_requires_every_stage(session, make_tournament):
    tournament = make_tournament(max_teams=4)
    # Stage exists but has never been drawn
    assert complete_tournament_if_finished(session, tournament.id) is False
    assert complete_tournament_if_finished(session, 99999) is False
