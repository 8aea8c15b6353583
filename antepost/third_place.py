from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Dict, Iterable, List, Mapping

import pandas as pd

from antepost.config import THIRD_PLACE_QUALIFIERS
from antepost.standings import FinalGroupStanding
from antepost.tiebreakers import final_tiebreaker_key


@dataclass
class ThirdPlaceTeam(FinalGroupStanding):
    pass


def _third_place_key(team: ThirdPlaceTeam):
    # No head-to-head across groups: points, then the overall tiebreakers.
    return (-team.points,) + final_tiebreaker_key(team)


def rank_third_place_teams(
    all_standings: Mapping[str, Iterable[FinalGroupStanding]],
) -> List[ThirdPlaceTeam]:
    third_place: List[ThirdPlaceTeam] = []
    for group_name in sorted(all_standings):
        for standing in all_standings[group_name]:
            if standing.position != 3:
                continue
            values = {f.name: getattr(standing, f.name) for f in fields(FinalGroupStanding)}
            values["group_name"] = group_name
            third_place.append(ThirdPlaceTeam(**values))
            break
    return sorted(third_place, key=_third_place_key)


def select_best_third_place_teams(
    all_standings: Mapping[str, Iterable[FinalGroupStanding]],
    count: int = THIRD_PLACE_QUALIFIERS,
) -> List[ThirdPlaceTeam]:
    return rank_third_place_teams(all_standings)[:count]


def advancing_third_place_groups(best_third: Iterable[ThirdPlaceTeam]) -> List[str]:
    return sorted(team.group_name for team in best_third)


def third_place_table(
    ranked: Iterable[ThirdPlaceTeam], qualifying: int = THIRD_PLACE_QUALIFIERS
) -> pd.DataFrame:
    rows: List[Dict] = []
    for rank, team in enumerate(ranked, start=1):
        rows.append(
            {
                "rank": rank,
                "group": team.group_name,
                "team": team.team_code,
                "played": team.played,
                "gd": team.goal_difference,
                "gf": team.goals_for,
                "points": team.points,
                "qualified": rank <= qualifying,
            }
        )
    columns = ["rank", "group", "team", "played", "gd", "gf", "points", "qualified"]
    return pd.DataFrame(rows, columns=columns).set_index("rank")
