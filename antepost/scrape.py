from __future__ import annotations

import logging
import re
from typing import Dict, List, Optional

import requests
from bs4 import BeautifulSoup

from antepost.combinations import (
    ALL_COMBINATIONS,
    PUBLISHED,
    WINNER_COLUMN_MATCHES,
    WINNER_COLUMNS,
    CombinationMatrix,
    combination_key,
)
from antepost.config import COMBINATIONS_SOURCE_URL, GROUPS
from antepost.exceptions import CombinationMatrixError

logger = logging.getLogger(__name__)

SLOT_PATTERN = re.compile(r"^3\s*([A-L])$")


def _header_column(text: str) -> Optional[str]:
    # "1A vs", "1A" or "Winner A vs" style headers
    cleaned = re.sub(r"\[.*?\]", "", text).replace("\xa0", " ").strip().upper()
    m = re.match(r"^1\s*([A-L])\b", cleaned)
    if m:
        column = f"1{m.group(1)}"
        return column if column in WINNER_COLUMNS else None
    return None


def _find_combination_table(soup: BeautifulSoup):
    for table in soup.find_all("table"):
        for row in table.find_all("tr")[:3]:
            headers = [c.get_text(" ", strip=True) for c in row.find_all(["th", "td"])]
            columns = [_header_column(h) for h in headers]
            found = [c for c in columns if c is not None]
            if sorted(found) == sorted(WINNER_COLUMNS):
                return table, found
    return None, None


def parse_combination_table(html: str) -> CombinationMatrix:
    soup = BeautifulSoup(html, "html.parser")
    table, column_order = _find_combination_table(soup)
    if table is None:
        raise CombinationMatrixError("No round-of-32 combination table found in page")

    combos: Dict[str, Dict[int, str]] = {}
    skipped = 0
    for row in table.find_all("tr"):
        cells = [c.get_text(" ", strip=True) for c in row.find_all(["th", "td"])]
        if len(cells) < len(column_order):
            continue
        slots: List[str] = []
        for value in cells[-len(column_order):]:
            m = SLOT_PATTERN.match(value.replace("\xa0", " ").strip().upper())
            if not m:
                break
            slots.append(m.group(1))
        if len(slots) != len(column_order):
            skipped += 1
            continue
        try:
            key = combination_key(slots)
        except ValueError:
            logger.warning("Skipping combination row with repeated groups: %s", cells)
            continue
        if key in combos:
            raise CombinationMatrixError(f"Duplicate combination in source table: {key}")
        combos[key] = {
            WINNER_COLUMN_MATCHES[col]: group for col, group in zip(column_order, slots)
        }

    logger.info("Parsed %d combinations (%d non-data rows skipped)", len(combos), skipped)
    if not combos:
        raise CombinationMatrixError("Combination table contained no data rows")
    return CombinationMatrix(combos, {key: PUBLISHED for key in combos})


def fetch_combination_table(
    url: str = COMBINATIONS_SOURCE_URL,
    session: Optional[requests.Session] = None,
    timeout: float = 30,
) -> CombinationMatrix:
    session = session or requests.Session()
    resp = session.get(url, headers={"User-Agent": "Mozilla/5.0"}, timeout=timeout)
    resp.raise_for_status()
    matrix = parse_combination_table(resp.text)
    if len(matrix) != len(ALL_COMBINATIONS):
        logger.warning(
            "Source lists %d of %d combinations for groups %s",
            len(matrix),
            len(ALL_COMBINATIONS),
            "".join(GROUPS),
        )
    return matrix
