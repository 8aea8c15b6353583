"""
Round-of-32 slots for the eight best third-placed teams.

FIFA publishes one fixed assignment for each of the C(12, 8) = 495 sets of
groups whose third-placed team can advance. The table is stored with one
column per group winner facing a third-placed team (1A, 1B, 1D, 1E, 1G, 1I,
1K, 1L), each holding the group letter of that winner's opponent.
"""
from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import numpy as np
import pandas as pd
from scipy.optimize import linear_sum_assignment

from antepost.config import GROUPS, ROUND_OF_32_COMBINATIONS_PATH, THIRD_PLACE_QUALIFIERS
from antepost.exceptions import CombinationMatrixError

logger = logging.getLogger(__name__)

PUBLISHED = "published"

THIRD_PLACE_MATCHES = [74, 77, 79, 80, 81, 82, 85, 87]
WINNER_COLUMNS = ["1A", "1B", "1D", "1E", "1G", "1I", "1K", "1L"]
WINNER_COLUMN_MATCHES = {
    "1A": 79,
    "1B": 85,
    "1D": 81,
    "1E": 74,
    "1G": 82,
    "1I": 77,
    "1K": 87,
    "1L": 80,
}
MATCH_WINNER_COLUMNS = {match: col for col, match in WINNER_COLUMN_MATCHES.items()}

# Groups whose third-placed team may be drawn into each slot.
THIRD_PLACE_SLOT_GROUPS = {
    74: frozenset("ABCDF"),
    77: frozenset("CDFGH"),
    79: frozenset("CEFHI"),
    80: frozenset("EHIJK"),
    81: frozenset("BEFIJ"),
    82: frozenset("AEHIJ"),
    85: frozenset("EFGIJ"),
    87: frozenset("DEIJL"),
}

ALL_COMBINATIONS = [
    "".join(c) for c in itertools.combinations(GROUPS, THIRD_PLACE_QUALIFIERS)
]


@dataclass(frozen=True)
class ThirdPlaceAssignment:
    match_number: int
    group_name: str


def combination_key(groups: Iterable[str]) -> str:
    letters = [str(g).strip().upper() for g in groups]
    if (
        len(letters) != THIRD_PLACE_QUALIFIERS
        or len(set(letters)) != THIRD_PLACE_QUALIFIERS
        or any(g not in GROUPS for g in letters)
    ):
        raise ValueError(
            f"Exactly {THIRD_PLACE_QUALIFIERS} distinct groups A-L must have "
            f"third-place teams advancing, got {letters}"
        )
    return "".join(sorted(letters))


def _parse_slot(value) -> str:
    text = str(value).strip().upper()
    if len(text) == 2 and text.startswith("3"):
        text = text[1:]
    return text


class CombinationMatrix:
    def __init__(
        self,
        combos: Dict[str, Dict[int, str]],
        sources: Optional[Dict[str, str]] = None,
    ):
        self.combos = combos
        self.sources = sources or {}

    @classmethod
    def from_csv(cls, path: Optional[Path] = None) -> "CombinationMatrix":
        path = Path(path) if path else ROUND_OF_32_COMBINATIONS_PATH
        if not path.exists():
            raise FileNotFoundError(f"Missing round-of-32 combinations file: {path}")
        df = pd.read_csv(path, dtype=str, keep_default_na=False)
        required = {"combo", *WINNER_COLUMNS}
        missing = required.difference(df.columns)
        if missing:
            raise CombinationMatrixError(
                f"Round-of-32 combinations file missing columns: {sorted(missing)}"
            )
        return cls.from_frame(df)

    @classmethod
    def from_frame(cls, df: pd.DataFrame) -> "CombinationMatrix":
        combos: Dict[str, Dict[int, str]] = {}
        sources: Dict[str, str] = {}
        for row in df.to_dict(orient="records"):
            raw_combo = str(row.get("combo", "")).replace(" ", "").strip()
            try:
                key = combination_key(raw_combo)
            except ValueError as exc:
                raise CombinationMatrixError(f"Invalid combination {raw_combo!r}") from exc
            if key in combos:
                raise CombinationMatrixError(f"Duplicate combination in matrix: {key}")
            combos[key] = {
                WINNER_COLUMN_MATCHES[col]: _parse_slot(row.get(col, ""))
                for col in WINNER_COLUMNS
            }
            sources[key] = str(row.get("source", "") or "").strip()
        return cls(combos, sources)

    def __len__(self) -> int:
        return len(self.combos)

    def __contains__(self, groups) -> bool:
        try:
            return combination_key(groups) in self.combos
        except ValueError:
            return False

    def is_published(self, groups: Iterable[str]) -> bool:
        return self.sources.get(combination_key(groups)) == PUBLISHED

    def lookup(self, groups: Iterable[str]) -> Optional[List[ThirdPlaceAssignment]]:
        slots = self.combos.get(combination_key(groups))
        if slots is None:
            return None
        return [
            ThirdPlaceAssignment(match_number=match, group_name=slots[match])
            for match in sorted(slots)
        ]

    def validate(self) -> List[str]:
        problems: List[str] = []
        for key in ALL_COMBINATIONS:
            if key not in self.combos:
                problems.append(f"missing combination {key}")
        for key, slots in self.combos.items():
            if sorted(slots) != THIRD_PLACE_MATCHES:
                problems.append(f"{key}: slots {sorted(slots)} do not cover {THIRD_PLACE_MATCHES}")
                continue
            assigned = sorted(slots.values())
            if assigned != sorted(key):
                problems.append(f"{key}: assigns groups {''.join(assigned)}")
            for match, group in slots.items():
                if group not in THIRD_PLACE_SLOT_GROUPS[match]:
                    problems.append(f"{key}: group {group} not allowed in match {match}")
        return problems

    def to_frame(self) -> pd.DataFrame:
        rows = []
        for key in sorted(self.combos):
            slots = self.combos[key]
            row = {"combo": key}
            for col in WINNER_COLUMNS:
                row[col] = slots[WINNER_COLUMN_MATCHES[col]]
            row["source"] = self.sources.get(key, "")
            rows.append(row)
        return pd.DataFrame(rows, columns=["combo", *WINNER_COLUMNS, "source"])

    def to_csv(self, path: Path) -> None:
        self.to_frame().to_csv(path, index=False)


@lru_cache(maxsize=None)
def load_combination_matrix(path: Optional[Path] = None) -> CombinationMatrix:
    return CombinationMatrix.from_csv(path)


def fallback_assignments(groups: Iterable[str]) -> List[ThirdPlaceAssignment]:
    key = combination_key(groups)
    letters = list(key)
    # Zero cost wherever FIFA allows the group in the slot.
    cost = np.ones((len(THIRD_PLACE_MATCHES), len(letters)))
    for i, match in enumerate(THIRD_PLACE_MATCHES):
        for j, group in enumerate(letters):
            if group in THIRD_PLACE_SLOT_GROUPS[match]:
                cost[i, j] = 0.0
    rows, cols = linear_sum_assignment(cost)
    violations = int(cost[rows, cols].sum())
    if violations:
        logger.error(
            "Fallback assignment for %s places %d third-place team(s) outside their allowed slots",
            key,
            violations,
        )
    return [
        ThirdPlaceAssignment(match_number=THIRD_PLACE_MATCHES[i], group_name=letters[j])
        for i, j in zip(rows, cols)
    ]


def get_third_place_match_assignments(
    advancing_groups: Iterable[str],
    matrix: Optional[CombinationMatrix] = None,
) -> List[ThirdPlaceAssignment]:
    key = combination_key(advancing_groups)
    matrix = matrix if matrix is not None else load_combination_matrix()
    assignments = matrix.lookup(key)
    if assignments is not None:
        if not matrix.is_published(key):
            logger.warning(
                "Combination %s is not from FIFA's published table (source: %s); "
                "run reference_data/generate/scrape_round_of_32_combinations.py to refresh it",
                key,
                matrix.sources.get(key) or "unknown",
            )
        return assignments
    logger.warning(
        "Combination %s not found in round-of-32 matrix, using fallback assignment", key
    )
    return fallback_assignments(key)
