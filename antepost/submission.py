from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from typing import Dict, List, Mapping, Optional, Tuple

from antepost.config import ANTE_POST, DRAFT_STAGES, LOCKED_PREDICTION_THRESHOLD
from antepost.exceptions import PredictionsLockedError, PredictionValidationError
from antepost.predictions import DraftStore, Prediction

logger = logging.getLogger(__name__)

RepositoryKey = Tuple[str, int, str]


class PredictionRepository(ABC):
    """Persistent predictions, one per user, match number and prediction type."""

    @abstractmethod
    def upsert(self, user_id: str, prediction: Prediction) -> None:
        pass

    @abstractmethod
    def get(self, user_id: str, match_number: int, prediction_type: str = ANTE_POST) -> Optional[Prediction]:
        pass

    @abstractmethod
    def count(self, user_id: str, prediction_type: str = ANTE_POST) -> int:
        pass

    def count_ante_post(self, user_id: str) -> int:
        return self.count(user_id, ANTE_POST)


class InMemoryPredictionRepository(PredictionRepository):
    def __init__(self):
        self._rows: Dict[RepositoryKey, Prediction] = {}

    def upsert(self, user_id: str, prediction: Prediction) -> None:
        if prediction.match_number is None:
            raise PredictionValidationError("prediction has no match number")
        if not prediction.is_complete:
            raise PredictionValidationError(
                "both scores must be predicted", prediction.match_number
            )
        key = (user_id, int(prediction.match_number), prediction.prediction_type)
        self._rows[key] = replace(prediction)

    def get(self, user_id: str, match_number: int, prediction_type: str = ANTE_POST) -> Optional[Prediction]:
        return self._rows.get((user_id, int(match_number), prediction_type))

    def count(self, user_id: str, prediction_type: str = ANTE_POST) -> int:
        return sum(1 for (u, _, t) in self._rows if u == user_id and t == prediction_type)


@dataclass
class StageSaveResult:
    stage: str
    saved_count: int = 0
    errors: List[str] = field(default_factory=list)


@dataclass
class BatchSaveResult:
    success: bool
    saved_count: int
    stage_results: Dict[str, StageSaveResult]
    errors: List[str] = field(default_factory=list)


def _save_stage(
    user_id: str,
    stage: str,
    predictions: Mapping,
    repository: PredictionRepository,
    match_numbers: Mapping[str, int],
) -> StageSaveResult:
    result = StageSaveResult(stage=stage)
    for key, pred in predictions.items():
        label = f"{stage} match {key}"
        if stage == "group":
            match_id = pred.match_id or str(key)
            number = match_numbers.get(match_id)
            if number is None:
                result.errors.append(f"{label}: unknown match id")
                continue
            record = replace(pred, match_id=match_id, match_number=number, predicted_winner_id=None)
        else:
            record = replace(pred, match_id=None, match_number=pred.match_number or int(key))
        record.prediction_type = ANTE_POST
        try:
            repository.upsert(user_id, record)
        except Exception as exc:
            result.errors.append(f"{label}: {exc}")
            continue
        result.saved_count += 1
    return result


def submit_ante_post_predictions(
    user_id: str,
    drafts: DraftStore,
    repository: PredictionRepository,
    match_numbers: Mapping[str, int],
) -> BatchSaveResult:
    """
    Persist every draft ante-post prediction and lock the user's picks.

    ``match_numbers`` maps group-stage match ids to FIFA match numbers.
    Failed saves are collected per stage; drafts are cleared and the lock set
    only when nothing failed, so a partial submission can be retried. Nothing
    is saved while any stage still has no draft predictions.
    """
    if drafts.is_locked():
        raise PredictionsLockedError("Ante-post predictions were already submitted")

    all_drafts = drafts.get_all()
    stage_results: Dict[str, StageSaveResult] = {}
    errors: List[str] = []
    missing = [stage for stage in DRAFT_STAGES if not all_drafts[stage]]
    if missing:
        for stage in missing:
            stage_results[stage] = StageSaveResult(stage=stage, errors=[f"{stage}: no draft predictions"])
            errors.extend(stage_results[stage].errors)
        logger.warning(
            "Not submitting ante-post predictions for %s, stages without drafts: %s",
            user_id,
            ", ".join(missing),
        )
        return BatchSaveResult(success=False, saved_count=0, stage_results=stage_results, errors=errors)

    for stage in DRAFT_STAGES:
        result = _save_stage(user_id, stage, all_drafts[stage], repository, match_numbers)
        stage_results[stage] = result
        errors.extend(result.errors)

    saved = sum(r.saved_count for r in stage_results.values())
    if errors:
        logger.warning(
            "Saved %d ante-post predictions for %s, %d failed: %s",
            saved,
            user_id,
            len(errors),
            ", ".join(errors),
        )
    else:
        drafts.clear_all()
        drafts.set_locked(True)
        logger.info("Submitted %d ante-post predictions for %s", saved, user_id)
    return BatchSaveResult(
        success=not errors,
        saved_count=saved,
        stage_results=stage_results,
        errors=errors,
    )


def refresh_locked_status(
    user_id: str,
    drafts: DraftStore,
    repository: PredictionRepository,
    threshold: int = LOCKED_PREDICTION_THRESHOLD,
) -> bool:
    """Lock once the repository holds a full submission. A lock is never cleared here."""
    locked = drafts.is_locked() or repository.count_ante_post(user_id) >= threshold
    drafts.set_locked(locked)
    return locked
