from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from typing import Dict, Iterable, List, Mapping, Optional

import pandas as pd

from antepost.config import GROUPS, MATCHES_PER_GROUP, TEAMS_PER_GROUP
from antepost.exceptions import FixtureDataError
from antepost.fixtures import Match, Team, group_fixtures, validate_fixture
from antepost.predictions import Prediction
from antepost.tiebreakers import (
    TeamStanding,
    apply_final_tiebreakers,
    apply_tiebreakers,
    predicted_score,
)

logger = logging.getLogger(__name__)


@dataclass
class FinalGroupStanding(TeamStanding):
    position: int = 0
    group_name: str = ""


def _finalise(standing: TeamStanding, position: int, group_name: str) -> FinalGroupStanding:
    base = {f.name: getattr(standing, f.name) for f in fields(TeamStanding)}
    return FinalGroupStanding(**base, position=position, group_name=group_name)


def calculate_group_standings(
    group_name: str,
    fixtures: Iterable[Match],
    predictions: Mapping[str, Prediction],
    teams: Optional[Iterable[Team]] = None,
) -> List[FinalGroupStanding]:
    fixtures = list(fixtures)
    table: Dict[str, TeamStanding] = {}
    counted = 0
    for match in fixtures:
        validate_fixture(match, group=group_name)
        for team in (match.home_team, match.away_team):
            if team.id not in table:
                table[team.id] = TeamStanding.for_team(team)
        score = predicted_score(match, predictions)
        if score is None:
            continue
        hs, as_ = score
        table[match.home_team.id].record(hs, as_)
        table[match.away_team.id].record(as_, hs)
        counted += 1
    if len(table) > TEAMS_PER_GROUP:
        raise FixtureDataError(
            f"Group {group_name} fixtures name {len(table)} teams, expected {TEAMS_PER_GROUP}"
        )
    if len(fixtures) > MATCHES_PER_GROUP:
        raise FixtureDataError(
            f"Group {group_name} has {len(fixtures)} fixtures, expected {MATCHES_PER_GROUP}"
        )
    if counted < len(fixtures):
        logger.debug(
            "Group %s: %d of %d matches have complete predictions",
            group_name,
            counted,
            len(fixtures),
        )

    by_points: Dict[int, List[TeamStanding]] = {}
    for standing in table.values():
        by_points.setdefault(standing.points, []).append(standing)

    ordered: List[TeamStanding] = []
    for points in sorted(by_points, reverse=True):
        tied = by_points[points]
        if len(tied) == 1:
            ordered.append(tied[0])
        else:
            ordered.extend(apply_tiebreakers(tied, fixtures, predictions))

    # Members missing from the fixtures can only be placed on overall record.
    extra: Dict[str, TeamStanding] = {}
    for team in teams or []:
        if team.id not in table and team.id not in extra:
            extra[team.id] = TeamStanding.for_team(team)
    if len(table) + len(extra) > TEAMS_PER_GROUP:
        raise FixtureDataError(
            f"Group {group_name} lists {len(table) + len(extra)} teams, expected {TEAMS_PER_GROUP}"
        )
    ordered.extend(apply_final_tiebreakers(extra.values()))

    return [
        _finalise(standing, position, group_name)
        for position, standing in enumerate(ordered, start=1)
    ]


def calculate_all_group_standings(
    fixtures: Iterable[Match],
    predictions: Mapping[str, Prediction],
    teams_by_group: Optional[Mapping[str, Iterable[Team]]] = None,
) -> Dict[str, List[FinalGroupStanding]]:
    by_group = group_fixtures(fixtures)
    teams_by_group = teams_by_group or {}
    standings: Dict[str, List[FinalGroupStanding]] = {}
    for group in GROUPS:
        if group not in by_group:
            continue
        standings[group] = calculate_group_standings(
            group, by_group[group], predictions, teams=teams_by_group.get(group)
        )
    return standings


def group_table(standings: Iterable[FinalGroupStanding]) -> pd.DataFrame:
    rows = [
        {
            "team": s.team_code,
            "name": s.team_name,
            "position": s.position,
            "played": s.played,
            "won": s.won,
            "drawn": s.drawn,
            "lost": s.lost,
            "gf": s.goals_for,
            "ga": s.goals_against,
            "gd": s.goal_difference,
            "points": s.points,
        }
        for s in standings
    ]
    columns = ["team", "name", "position", "played", "won", "drawn", "lost", "gf", "ga", "gd", "points"]
    return pd.DataFrame(rows, columns=columns).set_index("team")
