"""
Refresh world_cup_2026_round_of_32_combinations.csv from the published table.

Published rows replace the stored ones. Combinations the page does not list
keep their stored assignment.
"""
from pathlib import Path

from antepost.combinations import PUBLISHED, CombinationMatrix
from antepost.config import ROUND_OF_32_COMBINATIONS_PATH
from antepost.scrape import fetch_combination_table


def refresh(path: Path = ROUND_OF_32_COMBINATIONS_PATH) -> CombinationMatrix:
    stored = CombinationMatrix.from_csv(path)
    print(f"Loaded {len(stored)} stored combinations from {path.name}")

    published = fetch_combination_table()
    print(f"Fetched {len(published)} published combinations")

    combos = dict(stored.combos)
    sources = dict(stored.sources)
    changed = 0
    for key, slots in published.combos.items():
        if combos.get(key) != slots:
            changed += 1
        combos[key] = slots
        sources[key] = PUBLISHED
    merged = CombinationMatrix(combos, sources)

    problems = merged.validate()
    if problems:
        for problem in problems[:20]:
            print(f"[INVALID] {problem}")
        raise ValueError(f"Merged matrix has {len(problems)} problems, not written.")

    merged.to_csv(path)
    n_published = sum(1 for s in sources.values() if s == PUBLISHED)
    print(f"Wrote {len(merged)} combinations ({n_published} published, {changed} changed)")
    return merged


if __name__ == "__main__":
    refresh()
