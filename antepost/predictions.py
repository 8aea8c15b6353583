from __future__ import annotations

import json
import numbers
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from typing import Dict, Optional, Union

import numpy as np

from antepost.config import ANTE_POST, DRAFT_KEYS, DRAFT_STAGES, LOCKED_KEY, PREDICTION_TYPES
from antepost.exceptions import PredictionsLockedError

PredictionKey = Union[str, int]


def is_score(value) -> bool:
    if value is None or isinstance(value, bool):
        return False
    if not isinstance(value, numbers.Real):
        return False
    if np.isnan(value) or value < 0:
        return False
    return float(value).is_integer()


@dataclass
class Prediction:
    home_score: Optional[int] = None
    away_score: Optional[int] = None
    predicted_winner_id: Optional[str] = None
    match_id: Optional[str] = None
    match_number: Optional[int] = None
    prediction_type: str = ANTE_POST

    def __post_init__(self):
        if self.prediction_type not in PREDICTION_TYPES:
            raise ValueError(f"Unknown prediction type: {self.prediction_type}")

    @property
    def is_complete(self) -> bool:
        return is_score(self.home_score) and is_score(self.away_score)

    @property
    def is_draw(self) -> bool:
        return self.is_complete and int(self.home_score) == int(self.away_score)

    def to_dict(self) -> Dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict) -> "Prediction":
        return cls(
            home_score=data.get("home_score"),
            away_score=data.get("away_score"),
            predicted_winner_id=data.get("predicted_winner_id"),
            match_id=data.get("match_id"),
            match_number=data.get("match_number"),
            prediction_type=data.get("prediction_type", ANTE_POST),
        )


class KeyValueStore(ABC):
    """String key-value storage holding draft predictions on the device."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        pass

    @abstractmethod
    def remove(self, key: str) -> None:
        pass


class InMemoryKeyValueStore(KeyValueStore):
    def __init__(self, data: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(data or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)


class DraftStore:
    """
    Draft ante-post predictions, one JSON document per stage.

    Group-stage drafts are keyed by match id; knockout drafts by FIFA match
    number, since knockout fixtures only exist inside each user's bracket.
    Once the locked flag is set every write is refused.
    """

    def __init__(self, store: Optional[KeyValueStore] = None):
        self.store = store if store is not None else InMemoryKeyValueStore()

    @staticmethod
    def _check_stage(stage: str) -> None:
        if stage not in DRAFT_KEYS:
            raise ValueError(f"Unknown draft stage: {stage}")

    def _ensure_unlocked(self) -> None:
        if self.is_locked():
            raise PredictionsLockedError(
                "Ante-post predictions have been submitted and are read-only"
            )

    def get_stage(self, stage: str) -> Dict[PredictionKey, Prediction]:
        self._check_stage(stage)
        raw = self.store.get(DRAFT_KEYS[stage])
        if not raw:
            return {}
        data = json.loads(raw)
        predictions: Dict[PredictionKey, Prediction] = {}
        for key, value in data.items():
            pred = Prediction.from_dict(value)
            if stage == "group":
                pred.match_id = pred.match_id or key
                predictions[key] = pred
            else:
                pred.match_number = pred.match_number or int(key)
                predictions[int(key)] = pred
        return predictions

    def save_stage(self, stage: str, predictions: Dict[PredictionKey, Prediction]) -> None:
        self._check_stage(stage)
        self._ensure_unlocked()
        payload = {str(key): pred.to_dict() for key, pred in predictions.items()}
        self.store.set(DRAFT_KEYS[stage], json.dumps(payload))

    def save_prediction(self, stage: str, key: PredictionKey, prediction: Prediction) -> None:
        predictions = self.get_stage(stage)
        if stage == "group":
            prediction.match_id = prediction.match_id or str(key)
            predictions[str(key)] = prediction
        else:
            prediction.match_number = prediction.match_number or int(key)
            predictions[int(key)] = prediction
        self.save_stage(stage, predictions)

    def get_all(self) -> Dict[str, Dict[PredictionKey, Prediction]]:
        return {stage: self.get_stage(stage) for stage in DRAFT_STAGES}

    def clear_all(self) -> None:
        for stage in DRAFT_STAGES:
            self.store.remove(DRAFT_KEYS[stage])

    def is_locked(self) -> bool:
        return self.store.get(LOCKED_KEY) == "true"

    def set_locked(self, locked: bool) -> None:
        self.store.set(LOCKED_KEY, "true" if locked else "false")
