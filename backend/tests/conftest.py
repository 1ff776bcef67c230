import os

# Must be set before arena.database / arena.main are imported
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["STATUS_SWEEP_ENABLED"] = "false"

from datetime import datetime, timedelta  # noqa: E402
from typing import Callable, List  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import Session, SQLModel, create_engine  # noqa: E402

from arena.database import get_session  # noqa: E402
from arena.main import app  # noqa: E402
from arena.models.player import Player  # noqa: E402
from arena.models.team import Team  # noqa: E402
from arena.models.tournament import BracketType, Tournament, TournamentStatus  # noqa: E402
from arena.services.stage_builder import create_stage  # noqa: E402

TEST_DATABASE_URL = "sqlite:///:memory:"

# ============================================================================
# Test Database Setup with StaticPool
# ============================================================================
# 1. sqlite:///:memory: with StaticPool so ALL sessions share same DB
# 2. check_same_thread=False required for TestClient/threaded access
# 3. All models are imported (via arena.models) before create_all()
# 4. App dependency overridden to use test_engine (see client_fixture)
# 5. Tables created and dropped per test
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


def override_get_session():
    """Override session to use test engine"""
    with Session(test_engine) as session:
        yield session


@pytest.fixture(name="session", scope="function")
def session_fixture():
    """Provide a test database session on fresh tables"""
    import arena.models  # noqa: F401

    SQLModel.metadata.create_all(test_engine)

    with Session(test_engine) as session:
        yield session

    SQLModel.metadata.drop_all(test_engine)


@pytest.fixture(name="client")
def client_fixture(session: Session):
    """Provide a test client with overridden database session

    Override is set BEFORE TestClient() and stays in place for the entire
    duration so the app never uses its own engine.
    """
    app.dependency_overrides[get_session] = override_get_session

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def make_tournament(session: Session) -> Callable[..., Tournament]:
    """Tournament with registration open and its first stage materialised."""

    def _make(
        bracket_type: BracketType = BracketType.SINGLE_ELIMINATION,
        max_teams: int = 8,
        status: TournamentStatus = TournamentStatus.REGISTRATION_OPEN,
        name: str = "Clan Clash Cup",
    ) -> Tournament:
        now = datetime.utcnow()
        tournament = Tournament(
            name=name,
            bracket_type=bracket_type,
            max_teams=max_teams,
            status=status,
            registration_start=now - timedelta(days=1),
            registration_end=now + timedelta(days=5),
            tournament_start=now + timedelta(days=7),
            tournament_end=now + timedelta(days=9),
        )
        session.add(tournament)
        session.flush()
        create_stage(session, tournament)
        session.commit()
        session.refresh(tournament)
        return tournament

    return _make


@pytest.fixture
def add_teams(session: Session) -> Callable[[Tournament, int], List[Team]]:
    """Register n teams (5 players each) in creation order."""

    def _add(tournament: Tournament, count: int) -> List[Team]:
        teams = []
        base = datetime.utcnow()
        for i in range(count):
            team = Team(
                tournament_id=tournament.id,
                name=f"Team {i + 1}",
                tag=f"#T{i + 1}",
                created_at=base + timedelta(seconds=i),
            )
            session.add(team)
            session.flush()
            for p in range(5):
                session.add(Player(team_id=team.id, name=f"Player {i + 1}-{p + 1}"))
            teams.append(team)
        session.commit()
        for team in teams:
            session.refresh(team)
        return teams

    return _add


@pytest.fixture
def session_factory(session: Session) -> Callable[[], Session]:
    """New sessions on the test engine, for code that opens its own."""
    return lambda: Session(test_engine)
