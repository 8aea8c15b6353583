from __future__ import annotations

from pathlib import Path

PACKAGE_DIR = Path(__file__).resolve().parent
REFERENCE_DATA_DIR = PACKAGE_DIR / "reference_data"
ROUND_OF_32_COMBINATIONS_PATH = (
    REFERENCE_DATA_DIR / "world_cup_2026_round_of_32_combinations.csv"
)
KNOCKOUT_MATCHES_PATH = REFERENCE_DATA_DIR / "world_cup_2026_knockout_matches.csv"
COMBINATIONS_SOURCE_URL = (
    "https://en.wikipedia.org/wiki/2026_FIFA_World_Cup_knockout_stage"
)

GROUPS = [chr(ord("A") + i) for i in range(12)]
TEAMS_PER_GROUP = 4
MATCHES_PER_GROUP = 6
THIRD_PLACE_QUALIFIERS = 8

POINTS_FOR_WIN = 3
POINTS_FOR_DRAW = 1

# Teams without a FIFA ranking sort after every ranked team.
UNRANKED_FIFA_RANKING = 999

ANTE_POST = "ante_post"
LIVE = "live"
PREDICTION_TYPES = (ANTE_POST, LIVE)

# Draft stages in submission order.
DRAFT_STAGES = ["group", "r32", "r16", "qf", "sf", "bronze_final", "final"]
DRAFT_KEYS = {
    "group": "ante_post_group_predictions",
    "r32": "ante_post_r32_predictions",
    "r16": "ante_post_r16_predictions",
    "qf": "ante_post_qf_predictions",
    "sf": "ante_post_sf_predictions",
    "bronze_final": "ante_post_bronze_final_predictions",
    "final": "ante_post_final_predictions",
}
LOCKED_KEY = "ante_post_is_locked"

# A user with at least this many stored ante-post predictions has submitted.
LOCKED_PREDICTION_THRESHOLD = 10
