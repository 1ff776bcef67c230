"""
Bracket view assembly.

Merges a generated skeleton with whatever matches are persisted for the stage.
Persisted rows supply teams, scores and winners; skeleton positions with no
row render as TBD placeholders. Assembly never fails on missing data, so an
empty stage renders exactly like its raw skeleton.
"""
from typing import Any, Dict, List, Optional, Tuple

from sqlmodel import Session, select

from arena.models.match import SIDE_LOSERS, SIDE_WINNERS, STATUS_PENDING, Match
from arena.models.team import Team
from arena.models.tournament import BracketType
from arena.models.tournament_stage import TournamentStage
from arena.services.bracket_structure import BracketSkeleton, SkeletonMatch, SkeletonRound, generate_skeleton
from arena.services.pairing_rules import group_letter
from arena.services.standings import compute_leaderboard, compute_standings

MatchKey = Tuple[str, Optional[int], int, int]


def _team_dict(team_id: Optional[int], teams_by_id: Dict[int, Team]) -> Optional[Dict[str, Any]]:
    if team_id is None:
        return None
    team = teams_by_id.get(team_id)
    if team is None:
        return {"id": team_id, "name": f"Team {team_id}", "tag": None, "logo": None}
    return {"id": team.id, "name": team.name, "tag": team.tag, "logo": team.logo}


def _match_view(sk: SkeletonMatch, row: Optional[Match], teams_by_id: Dict[int, Team]) -> Dict[str, Any]:
    view = {
        "id": None,
        "match_code": sk.code,
        "bracket_side": sk.side,
        "group_index": sk.group_index,
        "round_number": sk.round_number,
        "match_number": sk.match_number,
        "team1": None,
        "team2": None,
        "placeholder_1": sk.placeholder(1),
        "placeholder_2": sk.placeholder(2),
        "score1": None,
        "score2": None,
        "winner_id": None,
        "status": STATUS_PENDING,
        "scheduled_time": None,
    }
    if row is not None:
        view.update(
            {
                "id": row.id,
                "team1": _team_dict(row.team1_id, teams_by_id),
                "team2": _team_dict(row.team2_id, teams_by_id),
                "placeholder_1": row.placeholder_1,
                "placeholder_2": row.placeholder_2,
                "score1": row.score1,
                "score2": row.score2,
                "winner_id": row.winner_id,
                "status": row.status,
                "scheduled_time": row.scheduled_time,
            }
        )
    return view


def _round_view(sk_round: SkeletonRound, rows: Dict[MatchKey, Match], teams_by_id: Dict[int, Team]) -> Dict[str, Any]:
    return {
        "round_number": sk_round.round_number,
        "name": sk_round.name,
        "matches": [_match_view(m, rows.get(m.key), teams_by_id) for m in sk_round.matches],
    }


def assemble_bracket_view(
    skeleton: BracketSkeleton,
    matches: List[Match],
    teams_by_id: Optional[Dict[int, Team]] = None,
) -> Dict[str, Any]:
    teams_by_id = teams_by_id or {}
    rows: Dict[MatchKey, Match] = {
        (m.bracket_side, m.group_index, m.round_number, m.match_number): m for m in matches
    }
    team_names = {tid: t.name for tid, t in teams_by_id.items()}

    view: Dict[str, Any] = {
        "bracket_type": skeleton.bracket_type.value,
        "slot_count": skeleton.slot_count,
        "total_matches": skeleton.total_matches,
        "total_rounds": skeleton.total_rounds,
    }

    if skeleton.bracket_type == BracketType.SINGLE_ELIMINATION:
        view["rounds"] = [_round_view(r, rows, teams_by_id) for r in skeleton.rounds]

    elif skeleton.bracket_type == BracketType.DOUBLE_ELIMINATION:
        view["winners_rounds"] = skeleton.winners_rounds
        view["losers_rounds"] = skeleton.losers_rounds
        view["winners_bracket"] = []
        view["losers_bracket"] = []
        view["grand_final"] = None
        for r in skeleton.rounds:
            if r.side == SIDE_WINNERS:
                view["winners_bracket"].append(_round_view(r, rows, teams_by_id))
            elif r.side == SIDE_LOSERS:
                view["losers_bracket"].append(_round_view(r, rows, teams_by_id))
            else:
                gf = r.matches[0]
                view["grand_final"] = _match_view(gf, rows.get(gf.key), teams_by_id)

    elif skeleton.bracket_type == BracketType.GROUP_STAGE:
        groups: Dict[int, Dict[str, Any]] = {}
        for r in skeleton.rounds:
            group = groups.setdefault(
                r.group_index,
                {"group_index": r.group_index, "name": f"Group {group_letter(r.group_index)}", "rounds": []},
            )
            group["rounds"].append(_round_view(r, rows, teams_by_id))
        for group in groups.values():
            group_matches = [m for m in matches if m.group_index == group["group_index"]]
            team_ids = sorted(
                {tid for m in group_matches for tid in (m.team1_id, m.team2_id) if tid is not None}
            )
            group["standings"] = [
                s.to_dict() for s in compute_standings(group_matches, team_names, team_ids)
            ]
        view["groups"] = [groups[g] for g in sorted(groups)]

    elif skeleton.bracket_type == BracketType.SWISS:
        view["rounds"] = [_round_view(r, rows, teams_by_id) for r in skeleton.rounds]
        team_ids = sorted({tid for m in matches for tid in (m.team1_id, m.team2_id) if tid is not None})
        view["standings"] = [s.to_dict() for s in compute_standings(matches, team_names, team_ids)]

    else:
        sk_round = skeleton.rounds[0] if skeleton.rounds else None
        view["matches"] = (
            [_match_view(m, rows.get(m.key), teams_by_id) for m in sk_round.matches] if sk_round else []
        )
        view["standings"] = compute_leaderboard(matches, team_names)

    return view


def skeleton_to_dict(skeleton: BracketSkeleton) -> Dict[str, Any]:
    """Render a bare skeleton (bracket preview)."""
    return assemble_bracket_view(skeleton, [], {})


def build_stage_view(session: Session, stage: TournamentStage) -> Dict[str, Any]:
    """Load a stage's matches and teams and assemble its bracket view."""
    # slot_count was produced by generate_skeleton, so it is already within MIN_SLOTS..max_teams
    skeleton = generate_skeleton(stage.stage_type, stage.slot_count, stage.slot_count)
    matches = session.exec(select(Match).where(Match.stage_id == stage.id)).all()
    teams = session.exec(select(Team).where(Team.tournament_id == stage.tournament_id)).all()
    return assemble_bracket_view(skeleton, matches, {t.id: t for t in teams})
