from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import pandas as pd

from antepost.config import GROUPS
from antepost.exceptions import FixtureDataError

MATCH_STATUSES = {"scheduled", "live", "finished", "postponed", "cancelled"}


@dataclass(frozen=True)
class Team:
    id: str
    code: str
    name: str
    fifa_ranking: Optional[int] = None
    confederation: Optional[str] = None


@dataclass
class Match:
    id: str
    match_number: int
    home_team: Optional[Team]
    away_team: Optional[Team]
    group: Optional[str] = None
    date: Optional[pd.Timestamp] = None
    home_score: Optional[int] = None
    away_score: Optional[int] = None
    status: str = "scheduled"
    stadium: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None

    @property
    def is_knockout(self) -> bool:
        return self.group is None


def _optional_int(value) -> Optional[int]:
    if value is None or pd.isna(value):
        return None
    return int(value)


def _optional_str(value) -> Optional[str]:
    if value is None or pd.isna(value):
        return None
    text = str(value).strip()
    return text or None


def _optional_timestamp(value) -> Optional[pd.Timestamp]:
    if value is None or pd.isna(value):
        return None
    return pd.Timestamp(value)


def load_teams(path: Path) -> Dict[str, Team]:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Missing teams file: {path}")
    df = pd.read_csv(path, dtype={"id": str, "code": str, "name": str})
    required = {"id", "code", "name"}
    missing = required.difference(df.columns)
    if missing:
        raise FixtureDataError(f"Teams file missing columns: {sorted(missing)}")
    df["id"] = df["id"].astype(str).str.strip()
    if df["id"].duplicated().any():
        dupes = df.loc[df["id"].duplicated(), "id"].unique().tolist()
        raise FixtureDataError(f"Teams file contains duplicate ids: {sorted(dupes)}")
    if "fifa_ranking" in df.columns:
        df["fifa_ranking"] = pd.to_numeric(df["fifa_ranking"], errors="coerce")

    teams: Dict[str, Team] = {}
    for row in df.to_dict(orient="records"):
        team = Team(
            id=row["id"],
            code=str(row["code"]).strip(),
            name=str(row["name"]).strip(),
            fifa_ranking=_optional_int(row.get("fifa_ranking")),
            confederation=_optional_str(row.get("confederation")),
        )
        teams[team.id] = team
    return teams


def load_group_matches(path: Path, teams: Dict[str, Team]) -> List[Match]:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Missing group matches file: {path}")
    df = pd.read_csv(
        path, dtype={"match_id": str, "home_team_id": str, "away_team_id": str}
    )
    required = {"match_id", "match_number", "group", "home_team_id", "away_team_id"}
    missing = required.difference(df.columns)
    if missing:
        raise FixtureDataError(f"Group matches file missing columns: {sorted(missing)}")
    df["match_id"] = df["match_id"].astype(str).str.strip()
    df["match_number"] = pd.to_numeric(df["match_number"], errors="raise").astype(int)
    df["group"] = df["group"].astype(str).str.strip()
    df["home_team_id"] = df["home_team_id"].astype(str).str.strip()
    df["away_team_id"] = df["away_team_id"].astype(str).str.strip()
    if "date" in df.columns:
        df["date"] = pd.to_datetime(df["date"], errors="raise")
    for col in ("home_score", "away_score"):
        if col in df.columns:
            df[col] = pd.to_numeric(df[col], errors="coerce")
    if df["match_id"].duplicated().any():
        dupes = df.loc[df["match_id"].duplicated(), "match_id"].unique().tolist()
        raise FixtureDataError(
            f"Group matches file contains duplicate match_id values: {sorted(dupes)}"
        )

    def resolve_team(team_id: str, match_id: str) -> Team:
        if team_id not in teams:
            raise FixtureDataError(f"Match {match_id} references unknown team: {team_id}")
        return teams[team_id]

    matches: List[Match] = []
    for row in df.sort_values("match_number").to_dict(orient="records"):
        group = row["group"]
        if group not in GROUPS:
            raise FixtureDataError(f"Invalid group in {path}: {group}")
        status = _optional_str(row.get("status")) or "scheduled"
        if status not in MATCH_STATUSES:
            raise FixtureDataError(f"Invalid status for match {row['match_id']}: {status}")
        match = Match(
            id=row["match_id"],
            match_number=int(row["match_number"]),
            group=group,
            home_team=resolve_team(row["home_team_id"], row["match_id"]),
            away_team=resolve_team(row["away_team_id"], row["match_id"]),
            date=_optional_timestamp(row.get("date")),
            home_score=_optional_int(row.get("home_score")),
            away_score=_optional_int(row.get("away_score")),
            status=status,
            stadium=_optional_str(row.get("stadium")),
            city=_optional_str(row.get("city")),
            country=_optional_str(row.get("country")),
        )
        validate_fixture(match)
        matches.append(match)
    return matches


def validate_fixture(match: Match, group: Optional[str] = None) -> None:
    if match.home_team is None or match.away_team is None:
        raise FixtureDataError(f"Match {match.id} is missing a team reference")
    if match.home_team.id == match.away_team.id:
        raise FixtureDataError(
            f"Match {match.id} pairs {match.home_team.code} against itself"
        )
    if group is not None and match.group is not None and match.group != group:
        raise FixtureDataError(
            f"Match {match.id} belongs to group {match.group}, not group {group}"
        )


def group_fixtures(matches: Iterable[Match]) -> Dict[str, List[Match]]:
    groups: Dict[str, List[Match]] = {}
    for match in matches:
        if match.group is None:
            continue
        groups.setdefault(match.group, []).append(match)
    for group_matches in groups.values():
        group_matches.sort(key=lambda m: m.match_number)
    return {g: groups[g] for g in sorted(groups)}


def group_teams(fixtures: Iterable[Match]) -> List[Team]:
    """Teams in order of first appearance across the fixtures."""
    seen: Dict[str, Team] = {}
    for match in fixtures:
        for team in (match.home_team, match.away_team):
            if team is not None and team.id not in seen:
                seen[team.id] = team
    return list(seen.values())
