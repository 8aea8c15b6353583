from __future__ import annotations

import logging
import re
from dataclasses import dataclass, replace
from functools import lru_cache
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Union

import pandas as pd

from antepost.combinations import CombinationMatrix, get_third_place_match_assignments
from antepost.config import GROUPS, KNOCKOUT_MATCHES_PATH, THIRD_PLACE_QUALIFIERS
from antepost.exceptions import FixtureDataError, PredictionValidationError
from antepost.fixtures import Match
from antepost.predictions import Prediction
from antepost.standings import FinalGroupStanding, calculate_all_group_standings
from antepost.third_place import (
    ThirdPlaceTeam,
    advancing_third_place_groups,
    select_best_third_place_teams,
)

logger = logging.getLogger(__name__)

ROUND_OF_32 = "Round of 32"
ROUND_OF_16 = "Round of 16"
QUARTER_FINALS = "Quarter Finals"
SEMI_FINALS = "Semi Finals"
BRONZE_FINAL = "Bronze Final"
FINAL = "Final"

KNOCKOUT_STAGES = [ROUND_OF_32, ROUND_OF_16, QUARTER_FINALS, SEMI_FINALS, BRONZE_FINAL, FINAL]
STAGE_ROUND_NUMBERS = {stage: i for i, stage in enumerate(KNOCKOUT_STAGES, start=1)}
STAGE_MATCH_COUNTS = {
    ROUND_OF_32: 16,
    ROUND_OF_16: 8,
    QUARTER_FINALS: 4,
    SEMI_FINALS: 2,
    BRONZE_FINAL: 1,
    FINAL: 1,
}
PRIOR_STAGE = {
    ROUND_OF_16: ROUND_OF_32,
    QUARTER_FINALS: ROUND_OF_16,
    SEMI_FINALS: QUARTER_FINALS,
    BRONZE_FINAL: SEMI_FINALS,
    FINAL: SEMI_FINALS,
}
STAGE_DRAFT_KEYS = {
    ROUND_OF_32: "r32",
    ROUND_OF_16: "r16",
    QUARTER_FINALS: "qf",
    SEMI_FINALS: "sf",
    BRONZE_FINAL: "bronze_final",
    FINAL: "final",
}

GROUP_LABEL = re.compile(r"^(Winner|Runner-up) Group ([A-L])$")
THIRD_PLACE_LABEL = re.compile(r"^3rd Group ([A-L](?:/[A-L])*)$")
MATCH_LABEL = re.compile(r"^(Winner|Loser) Match (\d+)$")

KnockoutPredictions = Mapping[Union[int, str], Prediction]


@dataclass(frozen=True)
class BracketTeam:
    id: str
    code: str
    name: str
    source: str


@dataclass(frozen=True)
class KnockoutMatch:
    match_number: int
    home_team: BracketTeam
    away_team: BracketTeam
    stage: str
    round_number: int

    @property
    def team_ids(self) -> List[str]:
        return [self.home_team.id, self.away_team.id]


@dataclass
class RoundOf32Result:
    bracket: List[KnockoutMatch]
    group_standings: Dict[str, List[FinalGroupStanding]]
    best_third_place: List[ThirdPlaceTeam]


@lru_cache(maxsize=None)
def _read_knockout_schedule(path: Path) -> pd.DataFrame:
    if not path.exists():
        raise FileNotFoundError(f"Missing knockout matches file: {path}")
    df = pd.read_csv(path)
    required = {"match_id", "stage", "home", "away"}
    missing = required.difference(df.columns)
    if missing:
        raise FixtureDataError(f"Knockout matches file missing columns: {sorted(missing)}")
    df["match_id"] = pd.to_numeric(df["match_id"], errors="raise").astype(int)
    df["stage"] = df["stage"].astype(str).str.strip()
    df["home"] = df["home"].astype(str).str.strip()
    df["away"] = df["away"].astype(str).str.strip()
    unknown = sorted(set(df["stage"]).difference(KNOCKOUT_STAGES))
    if unknown:
        raise FixtureDataError(f"Knockout matches file has unknown stages: {unknown}")
    if "round_number" in df.columns:
        df["round_number"] = pd.to_numeric(df["round_number"], errors="raise").astype(int)
    else:
        df["round_number"] = df["stage"].map(STAGE_ROUND_NUMBERS)
    if df["match_id"].duplicated().any():
        dupes = df.loc[df["match_id"].duplicated(), "match_id"].unique().tolist()
        raise FixtureDataError(
            "Knockout matches file contains duplicate match_id values: "
            f"{sorted(dupes)}"
        )
    return df.sort_values("match_id").reset_index(drop=True)


def load_knockout_schedule(path: Optional[Path] = None) -> pd.DataFrame:
    return _read_knockout_schedule(Path(path) if path else KNOCKOUT_MATCHES_PATH).copy()


def _stage_fixtures(stage: str, schedule: Optional[pd.DataFrame]) -> pd.DataFrame:
    if stage not in STAGE_MATCH_COUNTS:
        raise ValueError(f"Unknown knockout stage: {stage}")
    schedule = schedule if schedule is not None else load_knockout_schedule()
    return schedule.loc[schedule["stage"] == stage]


def stage_match_numbers(stage: str, schedule: Optional[pd.DataFrame] = None) -> List[int]:
    return [int(m) for m in _stage_fixtures(stage, schedule)["match_id"]]


def _prediction_for(predictions: KnockoutPredictions, match_number: int) -> Optional[Prediction]:
    pred = predictions.get(match_number)
    if pred is None:
        pred = predictions.get(str(match_number))
    return pred


def match_winner(match: KnockoutMatch, prediction: Optional[Prediction]) -> Optional[BracketTeam]:
    if prediction is None or not prediction.is_complete:
        return None
    hs = int(prediction.home_score)
    as_ = int(prediction.away_score)
    if hs > as_:
        return match.home_team
    if as_ > hs:
        return match.away_team
    if prediction.predicted_winner_id == match.home_team.id:
        return match.home_team
    if prediction.predicted_winner_id == match.away_team.id:
        return match.away_team
    logger.debug("Match %d predicted as a draw without a valid winner", match.match_number)
    return None


def match_loser(match: KnockoutMatch, prediction: Optional[Prediction]) -> Optional[BracketTeam]:
    winner = match_winner(match, prediction)
    if winner is None:
        return None
    return match.away_team if winner.id == match.home_team.id else match.home_team


def validate_knockout_prediction(match: KnockoutMatch, prediction: Prediction) -> None:
    number = match.match_number
    if not prediction.is_complete:
        raise PredictionValidationError("both scores must be predicted", number)
    winner_id = prediction.predicted_winner_id
    if prediction.is_draw:
        if winner_id is None:
            raise PredictionValidationError(
                "a drawn knockout match needs a predicted winner", number
            )
        if winner_id not in match.team_ids:
            raise PredictionValidationError(
                f"predicted winner {winner_id} does not play in this match", number
            )
    elif winner_id is not None and winner_id != match_winner(match, prediction).id:
        raise PredictionValidationError(
            f"predicted winner {winner_id} contradicts the predicted score", number
        )


def _team_from_standing(standing: FinalGroupStanding, source: str) -> BracketTeam:
    return BracketTeam(
        id=standing.team_id,
        code=standing.team_code,
        name=standing.team_name,
        source=source,
    )


def generate_round_of_32_bracket(
    all_standings: Mapping[str, Iterable[FinalGroupStanding]],
    best_third: Iterable[ThirdPlaceTeam],
    matrix: Optional[CombinationMatrix] = None,
    schedule: Optional[pd.DataFrame] = None,
) -> List[KnockoutMatch]:
    best_third = list(best_third)
    third_by_group = {team.group_name: team for team in best_third}
    advancing = advancing_third_place_groups(best_third)
    assignments: Dict[int, str] = {}
    if len(advancing) == THIRD_PLACE_QUALIFIERS:
        assignments = {
            a.match_number: a.group_name
            for a in get_third_place_match_assignments(advancing, matrix)
        }
    else:
        logger.debug("Only %d third-placed teams available", len(advancing))

    def standing_at(group: str, position: int) -> Optional[FinalGroupStanding]:
        for standing in all_standings.get(group, []):
            if standing.position == position:
                return standing
        return None

    def resolve_label(label: str, match_number: int) -> Optional[BracketTeam]:
        m = GROUP_LABEL.match(label)
        if m:
            kind, group = m.groups()
            standing = standing_at(group, 1 if kind == "Winner" else 2)
            if standing is None:
                return None
            return _team_from_standing(standing, f"{kind} Group {group}")
        m = THIRD_PLACE_LABEL.match(label)
        if m:
            group = assignments.get(match_number)
            if group is None:
                return None
            if group not in m.group(1).split("/"):
                logger.warning(
                    "Match %d: third-placed team from group %s outside slot %s",
                    match_number,
                    group,
                    label,
                )
            team = third_by_group.get(group)
            if team is None:
                return None
            return _team_from_standing(team, f"3rd Place Group {group}")
        raise FixtureDataError(f"Unrecognized round-of-32 placeholder: {label}")

    matches: List[KnockoutMatch] = []
    for row in _stage_fixtures(ROUND_OF_32, schedule).itertuples(index=False):
        match_number = int(row.match_id)
        home = resolve_label(row.home, match_number)
        away = resolve_label(row.away, match_number)
        if home is None or away is None:
            continue
        matches.append(
            KnockoutMatch(
                match_number=match_number,
                home_team=home,
                away_team=away,
                stage=ROUND_OF_32,
                round_number=int(row.round_number),
            )
        )

    if len(matches) != STAGE_MATCH_COUNTS[ROUND_OF_32] and len(all_standings) == len(GROUPS):
        created = {m.match_number for m in matches}
        missing = [n for n in stage_match_numbers(ROUND_OF_32, schedule) if n not in created]
        logger.warning("Round of 32 generated without matches %s", missing)
    return matches


def generate_next_round(
    stage: str,
    predictions: KnockoutPredictions,
    prior_bracket: Iterable[KnockoutMatch],
    schedule: Optional[pd.DataFrame] = None,
) -> List[KnockoutMatch]:
    if stage == ROUND_OF_32:
        raise ValueError("The round of 32 is drawn from group standings")
    prior = {m.match_number: m for m in prior_bracket}

    def resolve_label(label: str) -> Optional[BracketTeam]:
        m = MATCH_LABEL.match(label)
        if not m:
            raise FixtureDataError(f"Unrecognized {stage} placeholder: {label}")
        kind, number = m.group(1), int(m.group(2))
        match = prior.get(number)
        if match is None:
            return None
        pred = _prediction_for(predictions, number)
        team = match_winner(match, pred) if kind == "Winner" else match_loser(match, pred)
        if team is None:
            return None
        return replace(team, source=label)

    matches: List[KnockoutMatch] = []
    for row in _stage_fixtures(stage, schedule).itertuples(index=False):
        home = resolve_label(row.home)
        away = resolve_label(row.away)
        if home is None or away is None:
            continue
        matches.append(
            KnockoutMatch(
                match_number=int(row.match_id),
                home_team=home,
                away_team=away,
                stage=stage,
                round_number=int(row.round_number),
            )
        )
    return matches


def generate_round_of_16_bracket(
    r32_predictions: KnockoutPredictions,
    r32_bracket: Iterable[KnockoutMatch],
    schedule: Optional[pd.DataFrame] = None,
) -> List[KnockoutMatch]:
    return generate_next_round(ROUND_OF_16, r32_predictions, r32_bracket, schedule)


def generate_quarter_finals_bracket(
    r16_predictions: KnockoutPredictions,
    r16_bracket: Iterable[KnockoutMatch],
    schedule: Optional[pd.DataFrame] = None,
) -> List[KnockoutMatch]:
    return generate_next_round(QUARTER_FINALS, r16_predictions, r16_bracket, schedule)


def generate_semi_finals_bracket(
    qf_predictions: KnockoutPredictions,
    qf_bracket: Iterable[KnockoutMatch],
    schedule: Optional[pd.DataFrame] = None,
) -> List[KnockoutMatch]:
    return generate_next_round(SEMI_FINALS, qf_predictions, qf_bracket, schedule)


def generate_bronze_final_bracket(
    sf_predictions: KnockoutPredictions,
    sf_bracket: Iterable[KnockoutMatch],
    schedule: Optional[pd.DataFrame] = None,
) -> List[KnockoutMatch]:
    return generate_next_round(BRONZE_FINAL, sf_predictions, sf_bracket, schedule)


def generate_final_bracket(
    sf_predictions: KnockoutPredictions,
    sf_bracket: Iterable[KnockoutMatch],
    schedule: Optional[pd.DataFrame] = None,
) -> List[KnockoutMatch]:
    return generate_next_round(FINAL, sf_predictions, sf_bracket, schedule)


def is_stage_complete(stage: str, bracket: Iterable[KnockoutMatch]) -> bool:
    count = sum(1 for m in bracket if m.stage == stage)
    return count == STAGE_MATCH_COUNTS[stage]


def are_predictions_complete(
    bracket: Iterable[KnockoutMatch], predictions: KnockoutPredictions
) -> bool:
    return all(
        match_winner(m, _prediction_for(predictions, m.match_number)) is not None
        for m in bracket
    )


def generate_round_of_32(
    fixtures: Iterable[Match],
    predictions: Mapping[str, Prediction],
    matrix: Optional[CombinationMatrix] = None,
    schedule: Optional[pd.DataFrame] = None,
) -> RoundOf32Result:
    group_standings = calculate_all_group_standings(fixtures, predictions)
    best_third = select_best_third_place_teams(group_standings)
    bracket = generate_round_of_32_bracket(group_standings, best_third, matrix, schedule)
    return RoundOf32Result(
        bracket=bracket,
        group_standings=group_standings,
        best_third_place=best_third,
    )
