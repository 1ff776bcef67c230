"""Standings for round-robin groups, Swiss and leaderboard stages."""
from dataclasses import asdict, dataclass
from typing import Dict, Iterable, List, Optional

from arena.models.match import Match

POINTS_WIN = 3
POINTS_DRAW = 1
POINTS_LOSS = 0


@dataclass
class StandingRow:
    team_id: int
    team_name: str
    played: int = 0
    wins: int = 0
    draws: int = 0
    losses: int = 0
    score_for: int = 0
    score_against: int = 0
    points: int = 0

    @property
    def score_difference(self) -> int:
        return self.score_for - self.score_against

    def to_dict(self) -> Dict:
        data = asdict(self)
        data["score_difference"] = self.score_difference
        return data


def compute_standings(
    matches: Iterable[Match],
    team_names: Dict[int, str],
    team_ids: Optional[List[int]] = None,
) -> List[StandingRow]:
    """
    Win 3, draw 1, loss 0 over resolved two-team matches.

    Sorted by points, wins, score difference (all descending), then name.
    Teams listed in team_ids appear even before they have played.
    """
    rows: Dict[int, StandingRow] = {}

    def row(team_id: int) -> StandingRow:
        if team_id not in rows:
            rows[team_id] = StandingRow(team_id=team_id, team_name=team_names.get(team_id, f"Team {team_id}"))
        return rows[team_id]

    for team_id in team_ids or []:
        row(team_id)

    for m in matches:
        if m.team1_id is None or m.team2_id is None or m.score1 is None or m.score2 is None:
            continue
        home, away = row(m.team1_id), row(m.team2_id)
        home.played += 1
        away.played += 1
        home.score_for += m.score1
        home.score_against += m.score2
        away.score_for += m.score2
        away.score_against += m.score1
        if m.winner_id == m.team1_id:
            home.wins += 1
            away.losses += 1
        elif m.winner_id == m.team2_id:
            away.wins += 1
            home.losses += 1
        else:
            home.draws += 1
            away.draws += 1

    for r in rows.values():
        r.points = r.wins * POINTS_WIN + r.draws * POINTS_DRAW + r.losses * POINTS_LOSS

    return sorted(rows.values(), key=lambda r: (-r.points, -r.wins, -r.score_difference, r.team_name))


def compute_leaderboard(matches: Iterable[Match], team_names: Dict[int, str]) -> List[Dict]:
    """Total score per team across its scoring slots, highest first."""
    totals: Dict[int, Dict] = {}
    for m in matches:
        if m.team1_id is None:
            continue
        entry = totals.setdefault(
            m.team1_id,
            {"team_id": m.team1_id, "team_name": team_names.get(m.team1_id, f"Team {m.team1_id}"), "total_score": 0, "entries": 0},
        )
        if m.score1 is not None:
            entry["total_score"] += m.score1
            entry["entries"] += 1

    ranked = sorted(totals.values(), key=lambda e: (-e["total_score"], e["team_name"]))
    for position, entry in enumerate(ranked, start=1):
        entry["position"] = position
    return ranked
