import asyncio
from datetime import datetime, timedelta

from sqlmodel import Session

from arena.models.tournament import BracketType, Tournament, TournamentStatus
from arena.services.status_sweeper import StatusSweeper


def _open_tournament(session: Session) -> Tournament:
    now = datetime.utcnow()
    tournament = Tournament(
        name="Sweeper",
        bracket_type=BracketType.SWISS,
        max_teams=8,
        status=TournamentStatus.DRAFT,
        registration_start=now - timedelta(hours=1),
        tournament_start=now + timedelta(days=1),
    )
    session.add(tournament)
    session.commit()
    session.refresh(tournament)
    return tournament


def test_run_once_records_updates(session, session_factory):
    tournament = _open_tournament(session)
    sweeper = StatusSweeper(session_factory)

    updates = asyncio.run(sweeper.run_once())

    assert [u.tournament_id for u in updates] == [tournament.id]
    status = sweeper.status()
    assert status["is_running"] is False
    assert status["last_check_time"] is not None
    assert status["last_updates"][0]["new_status"] == "REGISTRATION_OPEN"


def test_start_and_stop(session, session_factory):
    _open_tournament(session)
    sweeper = StatusSweeper(session_factory, interval_seconds=60, initial_delay_seconds=0)

    async def scenario():
        sweeper.start()
        assert sweeper.is_running
        sweeper.start()  # second start is a no-op
        for _ in range(50):
            if sweeper.last_check_time is not None:
                break
            await asyncio.sleep(0.02)
        await sweeper.stop()

    asyncio.run(scenario())
    assert sweeper.is_running is False
    assert sweeper.last_check_time is not None
    assert sweeper.last_updates[0].new_status == "REGISTRATION_OPEN"
