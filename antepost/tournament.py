from __future__ import annotations

from typing import Dict, Iterable, List, Mapping, Optional

import pandas as pd

from antepost.bracket import (
    BRONZE_FINAL,
    FINAL,
    KNOCKOUT_STAGES,
    PRIOR_STAGE,
    ROUND_OF_32,
    STAGE_DRAFT_KEYS,
    BracketTeam,
    KnockoutMatch,
    are_predictions_complete,
    generate_next_round,
    generate_round_of_32_bracket,
    is_stage_complete,
    match_loser,
    match_winner,
)
from antepost.combinations import CombinationMatrix
from antepost.config import THIRD_PLACE_QUALIFIERS
from antepost.fixtures import Match
from antepost.predictions import DraftStore, Prediction
from antepost.standings import FinalGroupStanding, calculate_all_group_standings, group_table
from antepost.third_place import ThirdPlaceTeam, rank_third_place_teams
from antepost.tiebreakers import predicted_score

GROUP_STAGE = "Group"


class AntePostTournament:
    """
    One user's predicted World Cup 2026, derived entirely from their picks.

    Group predictions are keyed by match id, knockout predictions by FIFA
    match number (73-104). Nothing is cached: every view is recomputed from
    the current predictions, so editing an early pick reshapes every later
    stage.
    """

    def __init__(
        self,
        fixtures: Iterable[Match],
        group_predictions: Mapping[str, Prediction],
        knockout_predictions: Optional[Mapping[int, Prediction]] = None,
        matrix: Optional[CombinationMatrix] = None,
        schedule: Optional[pd.DataFrame] = None,
    ):
        self.fixtures = [m for m in fixtures if m.group is not None]
        self.group_predictions = dict(group_predictions)
        self.knockout_predictions = {
            int(k): v for k, v in (knockout_predictions or {}).items()
        }
        self.matrix = matrix
        self.schedule = schedule

    @classmethod
    def from_drafts(cls, fixtures: Iterable[Match], drafts: DraftStore, **kwargs) -> "AntePostTournament":
        all_drafts = drafts.get_all()
        knockout: Dict[int, Prediction] = {}
        for stage in KNOCKOUT_STAGES:
            knockout.update(all_drafts[STAGE_DRAFT_KEYS[stage]])
        return cls(fixtures, all_drafts["group"], knockout, **kwargs)

    @property
    def group_standings(self) -> Dict[str, List[FinalGroupStanding]]:
        return calculate_all_group_standings(self.fixtures, self.group_predictions)

    @property
    def group_tables(self) -> Dict[str, pd.DataFrame]:
        return {g: group_table(s) for g, s in self.group_standings.items()}

    @property
    def third_place_ranking(self) -> List[ThirdPlaceTeam]:
        return rank_third_place_teams(self.group_standings)

    @property
    def best_third_place(self) -> List[ThirdPlaceTeam]:
        return self.third_place_ranking[:THIRD_PLACE_QUALIFIERS]

    @property
    def group_stage_complete(self) -> bool:
        return all(
            predicted_score(m, self.group_predictions) is not None for m in self.fixtures
        )

    def brackets(self) -> Dict[str, List[KnockoutMatch]]:
        standings = self.group_standings
        best_third = rank_third_place_teams(standings)[:THIRD_PLACE_QUALIFIERS]
        generated = {
            ROUND_OF_32: generate_round_of_32_bracket(
                standings, best_third, self.matrix, self.schedule
            )
        }
        for stage in KNOCKOUT_STAGES[1:]:
            generated[stage] = generate_next_round(
                stage,
                self.knockout_predictions,
                generated[PRIOR_STAGE[stage]],
                self.schedule,
            )
        return generated

    def bracket(self, stage: str) -> List[KnockoutMatch]:
        if stage not in KNOCKOUT_STAGES:
            raise ValueError(f"Unknown knockout stage: {stage}")
        return self.brackets()[stage]

    def next_stage(self) -> Optional[str]:
        """First stage still waiting for predictions, or None once the final is picked."""
        if not self.group_stage_complete:
            return GROUP_STAGE
        for stage, matches in self.brackets().items():
            if not is_stage_complete(stage, matches):
                return stage
            if not are_predictions_complete(matches, self.knockout_predictions):
                return stage
        return None

    @property
    def champion(self) -> Optional[BracketTeam]:
        final = self.bracket(FINAL)
        if not final:
            return None
        return match_winner(final[0], self.knockout_predictions.get(final[0].match_number))

    def results_frame(self) -> pd.DataFrame:
        rows = []
        for match in sorted(self.fixtures, key=lambda m: m.match_number):
            score = predicted_score(match, self.group_predictions)
            if score is None:
                continue
            hs, as_ = score
            winner = None
            if hs > as_:
                winner = match.home_team.code
            elif as_ > hs:
                winner = match.away_team.code
            rows.append(
                {
                    "match_number": match.match_number,
                    "stage": GROUP_STAGE,
                    "group": match.group,
                    "home_team": match.home_team.code,
                    "away_team": match.away_team.code,
                    "home_score": hs,
                    "away_score": as_,
                    "winner": winner,
                }
            )
        for stage, matches in self.brackets().items():
            for match in matches:
                pred = self.knockout_predictions.get(match.match_number)
                winner = match_winner(match, pred)
                complete = pred is not None and pred.is_complete
                rows.append(
                    {
                        "match_number": match.match_number,
                        "stage": stage,
                        "group": None,
                        "home_team": match.home_team.code,
                        "away_team": match.away_team.code,
                        "home_score": int(pred.home_score) if complete else None,
                        "away_score": int(pred.away_score) if complete else None,
                        "winner": winner.code if winner else None,
                    }
                )
        columns = [
            "match_number",
            "stage",
            "group",
            "home_team",
            "away_team",
            "home_score",
            "away_score",
            "winner",
        ]
        return pd.DataFrame(rows, columns=columns)

    def stage_of_elimination(self) -> Dict[str, str]:
        """Furthest stage each team reaches in this predicted tournament, keyed by team code."""
        mapping = {
            GROUP_STAGE: "1. Group",
            "Round of 32": "2. Round of 32",
            "Round of 16": "3. Round of 16",
            "Quarter Finals": "4. Quarter Finals",
            "Semi Finals": "5. Semi Finals",
            "Fourth place": "6. Fourth place",
            "Third place": "7. Third place",
            "Final": "8. Final",
            "Champion": "9. Champion",
        }
        reached: Dict[str, str] = {}
        for match in self.fixtures:
            for team in (match.home_team, match.away_team):
                reached[team.code] = GROUP_STAGE

        for stage, matches in self.brackets().items():
            for match in matches:
                pred = self.knockout_predictions.get(match.match_number)
                if stage == BRONZE_FINAL:
                    winner = match_winner(match, pred)
                    loser = match_loser(match, pred)
                    if winner is not None:
                        reached[winner.code] = "Third place"
                        reached[loser.code] = "Fourth place"
                    continue
                for team in (match.home_team, match.away_team):
                    reached[team.code] = stage
                if stage == FINAL:
                    winner = match_winner(match, pred)
                    if winner is not None:
                        reached[winner.code] = "Champion"
        return {team: mapping[stage] for team, stage in sorted(reached.items())}
