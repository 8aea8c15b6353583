"""
Tests for predictions and the draft store.
"""
import json

import numpy as np
import pytest

from antepost.config import DRAFT_KEYS, LOCKED_KEY
from antepost.exceptions import PredictionsLockedError
from antepost.predictions import DraftStore, InMemoryKeyValueStore, Prediction, is_score


class TestPrediction:

    @pytest.mark.parametrize("value", [0, 3, 2.0, np.int64(1)])
    def test_valid_scores(self, value):
        assert is_score(value)

    @pytest.mark.parametrize("value", [None, -1, 1.5, True, "2", float("nan")])
    def test_invalid_scores(self, value):
        assert not is_score(value)

    def test_complete_and_draw(self):
        assert Prediction(home_score=1, away_score=1).is_draw
        assert not Prediction(home_score=2, away_score=1).is_draw
        assert not Prediction(home_score=None, away_score=1).is_complete
        assert not Prediction(home_score=None, away_score=None).is_draw

    def test_unknown_type(self):
        with pytest.raises(ValueError):
            Prediction(home_score=1, away_score=0, prediction_type="pundit")


class TestDraftStore:
    """Tests for DraftStore."""

    def test_group_and_knockout_keys(self):
        drafts = DraftStore()
        drafts.save_prediction("group", "A-1", Prediction(home_score=2, away_score=0))
        drafts.save_prediction("r32", 74, Prediction(home_score=1, away_score=1, predicted_winner_id="t-E1"))

        group = drafts.get_stage("group")
        r32 = drafts.get_stage("r32")
        assert group["A-1"].match_id == "A-1"
        assert list(r32) == [74]
        assert r32[74].match_number == 74
        assert r32[74].predicted_winner_id == "t-E1"

    def test_stored_as_json_per_stage(self):
        store = InMemoryKeyValueStore()
        drafts = DraftStore(store)
        drafts.save_prediction("final", 104, Prediction(home_score=0, away_score=1))

        payload = json.loads(store.get(DRAFT_KEYS["final"]))
        assert payload["104"]["away_score"] == 1
        assert store.get(DRAFT_KEYS["group"]) is None

    def test_overwrite_same_match(self):
        drafts = DraftStore()
        drafts.save_prediction("qf", 97, Prediction(home_score=1, away_score=0))
        drafts.save_prediction("qf", 97, Prediction(home_score=0, away_score=2))
        assert drafts.get_stage("qf")[97].away_score == 2

    def test_get_all_and_clear(self):
        drafts = DraftStore()
        drafts.save_prediction("sf", 101, Prediction(home_score=1, away_score=0))
        all_drafts = drafts.get_all()
        assert set(all_drafts) == set(DRAFT_KEYS)
        assert 101 in all_drafts["sf"]

        drafts.clear_all()
        assert all(not stage for stage in drafts.get_all().values())

    def test_locked_refuses_writes(self):
        store = InMemoryKeyValueStore()
        drafts = DraftStore(store)
        drafts.set_locked(True)

        assert store.get(LOCKED_KEY) == "true"
        with pytest.raises(PredictionsLockedError):
            drafts.save_prediction("group", "A-1", Prediction(home_score=1, away_score=0))

        drafts.set_locked(False)
        drafts.save_prediction("group", "A-1", Prediction(home_score=1, away_score=0))
        assert not drafts.is_locked()

    def test_unknown_stage(self):
        with pytest.raises(ValueError):
            DraftStore().get_stage("playoff")
