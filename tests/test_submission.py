"""
Tests for submitting ante-post predictions.
"""
import logging

import pytest

from antepost.config import DRAFT_STAGES
from antepost.exceptions import PredictionsLockedError
from antepost.predictions import DraftStore, InMemoryKeyValueStore, KeyValueStore, Prediction
from antepost.submission import (
    InMemoryPredictionRepository,
    PredictionRepository,
    refresh_locked_status,
    submit_ante_post_predictions,
)

MATCH_NUMBERS = {"A-1": 1, "A-2": 2}
SUBMITTED = [1, 2, 74, 89, 97, 101, 103, 104]


class FlakyRepository(InMemoryPredictionRepository):
    def __init__(self, failing):
        super().__init__()
        self.failing = set(failing)

    def upsert(self, user_id, prediction):
        if prediction.match_number in self.failing:
            raise ConnectionError("database unavailable")
        super().upsert(user_id, prediction)


@pytest.fixture
def drafts():
    store = DraftStore()
    store.save_prediction("group", "A-1", Prediction(home_score=2, away_score=1))
    store.save_prediction("group", "A-2", Prediction(home_score=0, away_score=0))
    store.save_prediction("r32", 74, Prediction(home_score=1, away_score=1, predicted_winner_id="t-E1"))
    store.save_prediction("r16", 89, Prediction(home_score=2, away_score=0))
    store.save_prediction("qf", 97, Prediction(home_score=1, away_score=0))
    store.save_prediction("sf", 101, Prediction(home_score=0, away_score=1))
    store.save_prediction("bronze_final", 103, Prediction(home_score=3, away_score=2))
    store.save_prediction("final", 104, Prediction(home_score=0, away_score=1))
    return store


def saved_numbers(repo, user_id):
    return [n for n in SUBMITTED if repo.get(user_id, n) is not None]


class TestSubmit:
    """Tests for submit_ante_post_predictions."""

    def test_success_locks_and_clears(self, drafts):
        repo = InMemoryPredictionRepository()
        result = submit_ante_post_predictions("user-1", drafts, repo, MATCH_NUMBERS)

        assert result.success
        assert result.saved_count == 8
        assert set(result.stage_results) == set(DRAFT_STAGES)
        assert result.stage_results["bronze_final"].saved_count == 1
        assert drafts.is_locked()
        assert all(not stage for stage in drafts.get_all().values())
        assert saved_numbers(repo, "user-1") == SUBMITTED
        assert repo.get("user-1", 74).predicted_winner_id == "t-E1"
        assert repo.get("user-1", 1).match_id == "A-1"

    def test_partial_failure_keeps_drafts(self, drafts, caplog):
        repo = FlakyRepository(failing=[74])
        with caplog.at_level(logging.WARNING, logger="antepost.submission"):
            result = submit_ante_post_predictions("user-1", drafts, repo, MATCH_NUMBERS)

        assert not result.success
        assert result.saved_count == 7
        assert result.stage_results["r32"].errors == ["r32 match 74: database unavailable"]
        assert not drafts.is_locked()
        assert 74 in drafts.get_stage("r32")
        assert "1 failed" in caplog.text

    def test_retry_is_idempotent(self, drafts):
        repo = FlakyRepository(failing=[74])
        submit_ante_post_predictions("user-1", drafts, repo, MATCH_NUMBERS)
        repo.failing.clear()
        result = submit_ante_post_predictions("user-1", drafts, repo, MATCH_NUMBERS)

        assert result.success
        assert repo.count_ante_post("user-1") == 8

    def test_unknown_group_match(self, drafts):
        result = submit_ante_post_predictions("user-1", drafts, InMemoryPredictionRepository(), {"A-1": 1})
        assert result.errors == ["group match A-2: unknown match id"]

    def test_already_locked(self, drafts):
        drafts.set_locked(True)
        with pytest.raises(PredictionsLockedError):
            submit_ante_post_predictions("user-1", drafts, InMemoryPredictionRepository(), MATCH_NUMBERS)

    def test_empty_drafts_not_locked(self, caplog):
        """Nothing to submit must not leave the user locked out."""
        drafts = DraftStore()
        repo = InMemoryPredictionRepository()
        with caplog.at_level(logging.WARNING, logger="antepost.submission"):
            result = submit_ante_post_predictions("user-1", drafts, repo, {})

        assert not result.success
        assert result.saved_count == 0
        assert len(result.errors) == len(DRAFT_STAGES)
        assert not drafts.is_locked()
        assert repo.count_ante_post("user-1") == 0
        assert "stages without drafts" in caplog.text

    def test_missing_stage_saves_nothing(self, drafts):
        drafts.save_stage("qf", {})
        repo = InMemoryPredictionRepository()
        result = submit_ante_post_predictions("user-1", drafts, repo, MATCH_NUMBERS)

        assert not result.success
        assert result.errors == ["qf: no draft predictions"]
        assert repo.count_ante_post("user-1") == 0
        assert 104 in drafts.get_stage("final")
        assert not drafts.is_locked()


class TestLockedStatus:

    def test_threshold(self):
        repo = InMemoryPredictionRepository()
        drafts = DraftStore()
        for n in range(73, 82):
            repo.upsert("user-1", Prediction(home_score=1, away_score=0, match_number=n))
        assert not refresh_locked_status("user-1", drafts, repo)

        repo.upsert("user-1", Prediction(home_score=1, away_score=0, match_number=82))
        assert refresh_locked_status("user-1", drafts, repo)
        assert drafts.is_locked()
        assert not refresh_locked_status("user-2", DraftStore(), repo)

    def test_submission_lock_survives_refresh(self, drafts):
        """A small submission stays locked even below the repository threshold."""
        repo = InMemoryPredictionRepository()
        submit_ante_post_predictions("user-1", drafts, repo, MATCH_NUMBERS)

        assert repo.count_ante_post("user-1") < 10
        assert refresh_locked_status("user-1", drafts, repo)
        assert drafts.is_locked()


class TestInterfaces:

    def test_partial_repository_rejected(self):
        class CountOnly(PredictionRepository):
            def count(self, user_id, prediction_type="ante_post"):
                return 0

        with pytest.raises(TypeError):
            CountOnly()

    def test_partial_key_value_store_rejected(self):
        class ReadOnly(KeyValueStore):
            def get(self, key):
                return None

        with pytest.raises(TypeError):
            ReadOnly()
        assert isinstance(InMemoryKeyValueStore(), KeyValueStore)
