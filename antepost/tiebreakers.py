"""
FIFA group-stage tiebreakers for teams level on points:

  1. points, goal difference, goals scored in matches among the tied teams,
     re-applied to any smaller subset still level after a pass
  2. overall goal difference, overall goals scored
  3. FIFA world ranking (unranked teams last), then team code

Fair play points are not tracked.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from antepost.config import POINTS_FOR_DRAW, POINTS_FOR_WIN, UNRANKED_FIFA_RANKING
from antepost.fixtures import Match, Team
from antepost.predictions import Prediction


@dataclass
class TeamStanding:
    team_id: str
    team_code: str
    team_name: str
    fifa_ranking: Optional[int] = None
    played: int = 0
    won: int = 0
    drawn: int = 0
    lost: int = 0
    goals_for: int = 0
    goals_against: int = 0
    goal_difference: int = 0
    points: int = 0

    @classmethod
    def for_team(cls, team: Team) -> "TeamStanding":
        return cls(
            team_id=team.id,
            team_code=team.code,
            team_name=team.name,
            fifa_ranking=team.fifa_ranking,
        )

    def record(self, scored: int, conceded: int) -> None:
        self.played += 1
        self.goals_for += scored
        self.goals_against += conceded
        self.goal_difference = self.goals_for - self.goals_against
        if scored > conceded:
            self.won += 1
            self.points += POINTS_FOR_WIN
        elif scored < conceded:
            self.lost += 1
        else:
            self.drawn += 1
            self.points += POINTS_FOR_DRAW


@dataclass(frozen=True)
class HeadToHeadRecord:
    points: int = 0
    goal_difference: int = 0
    goals_for: int = 0

    def sort_key(self) -> Tuple[int, int, int]:
        return (-self.points, -self.goal_difference, -self.goals_for)


def predicted_score(
    match: Match, predictions: Mapping[str, Prediction]
) -> Optional[Tuple[int, int]]:
    pred = predictions.get(match.id)
    if pred is None or not pred.is_complete:
        return None
    return int(pred.home_score), int(pred.away_score)


def head_to_head_records(
    tied: Iterable[TeamStanding],
    fixtures: Iterable[Match],
    predictions: Mapping[str, Prediction],
) -> Dict[str, HeadToHeadRecord]:
    ids = [t.team_id for t in tied]
    points = {team_id: 0 for team_id in ids}
    gd = {team_id: 0 for team_id in ids}
    gf = {team_id: 0 for team_id in ids}
    for match in fixtures:
        if match.home_team is None or match.away_team is None:
            continue
        home = match.home_team.id
        away = match.away_team.id
        if home not in points or away not in points:
            continue
        score = predicted_score(match, predictions)
        if score is None:
            continue
        hs, as_ = score
        gf[home] += hs
        gf[away] += as_
        gd[home] += hs - as_
        gd[away] += as_ - hs
        if hs > as_:
            points[home] += POINTS_FOR_WIN
        elif hs < as_:
            points[away] += POINTS_FOR_WIN
        else:
            points[home] += POINTS_FOR_DRAW
            points[away] += POINTS_FOR_DRAW
    return {
        team_id: HeadToHeadRecord(points[team_id], gd[team_id], gf[team_id])
        for team_id in ids
    }


def final_tiebreaker_key(team: TeamStanding) -> Tuple[int, int, int, str, str]:
    ranking = team.fifa_ranking if team.fifa_ranking is not None else UNRANKED_FIFA_RANKING
    return (-team.goal_difference, -team.goals_for, ranking, team.team_code, team.team_id)


def apply_final_tiebreakers(teams: Iterable[TeamStanding]) -> List[TeamStanding]:
    return sorted(teams, key=final_tiebreaker_key)


def apply_tiebreakers(
    tied: Iterable[TeamStanding],
    fixtures: Iterable[Match],
    predictions: Mapping[str, Prediction],
) -> List[TeamStanding]:
    tied = list(tied)
    if len(tied) <= 1:
        return tied
    fixtures = list(fixtures)

    records = head_to_head_records(tied, fixtures, predictions)
    ordered = sorted(tied, key=lambda t: records[t.team_id].sort_key())

    runs: List[List[TeamStanding]] = []
    for team in ordered:
        if runs and records[runs[-1][0].team_id] == records[team.team_id]:
            runs[-1].append(team)
        else:
            runs.append([team])

    resolved: List[TeamStanding] = []
    for run in runs:
        if len(run) == 1:
            resolved.append(run[0])
        elif len(run) < len(tied):
            # Head-to-head among the smaller subset only.
            resolved.extend(apply_tiebreakers(run, fixtures, predictions))
        else:
            resolved.extend(apply_final_tiebreakers(run))
    return resolved
