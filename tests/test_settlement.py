"""Tests for majority-vote settlement and the resulting point changes."""

import threading

import pytest

from trust import (
    TrustManager,
    TrustConfig,
    PredictionStatus,
    PredictionNotFound,
    StorageError,
    level_from_points,
)


def points(manager, wallet):
    account = manager.ledger.get(wallet)
    return account.total_points if account else 0


def assert_level_invariant(manager):
    for account in manager.ledger.list_accounts():
        assert account.total_points >= 0
        assert account.trust_level == level_from_points(account.total_points)


class TestScenarios:
    def test_majority_correct(self, manager, prediction, verify):
        verify("v1", "correct")
        verify("v2", "incorrect")
        verify("v3", "correct")

        settled = manager.get_prediction(prediction.prediction_id)
        assert settled.status == PredictionStatus.CORRECT
        assert settled.finalized_at is not None

        author = manager.ledger.get("author")
        assert author.total_points == 50
        assert author.correct_count == 1
        assert author.incorrect_count == 0
        assert author.pending_count == 0

        assert points(manager, "v1") == 10
        assert points(manager, "v3") == 10
        assert points(manager, "v2") == 0
        assert_level_invariant(manager)

    def test_majority_incorrect(self, manager, prediction, verify):
        manager.ledger.apply_delta("author", 100)
        verify("v1", "correct")
        verify("v2", "incorrect")
        verify("v3", "incorrect")

        assert manager.get_prediction(prediction.prediction_id).status == PredictionStatus.INCORRECT
        author = manager.ledger.get("author")
        assert author.total_points == 70
        assert author.trust_level == 1
        assert author.incorrect_count == 1
        assert author.pending_count == 0

        assert points(manager, "v2") == 10
        assert points(manager, "v3") == 10
        assert points(manager, "v1") == 0
        assert_level_invariant(manager)

    def test_incorrect_penalty_floors_at_zero(self, manager, prediction, verify):
        for wallet in ("v1", "v2", "v3"):
            verify(wallet, "incorrect")
        author = manager.ledger.get("author")
        assert author.total_points == 0
        assert author.incorrect_count == 1

    def test_tie_resolves_incorrect(self, db_path):
        # Three votes always have a strict majority, so collect them under a
        # higher quorum and let the fourth vote cross a quorum of 3 at 2-2.
        collecting = TrustManager(db_path=db_path, config=TrustConfig(min_verifiers=4))
        prediction = collecting.create_prediction("claim", "author")
        collecting.add_verification(prediction.prediction_id, "v1", "correct")
        collecting.add_verification(prediction.prediction_id, "v2", "incorrect")
        collecting.add_verification(prediction.prediction_id, "v3", "correct")
        assert collecting.get_prediction(prediction.prediction_id).is_pending

        manager = TrustManager(db_path=db_path, config=TrustConfig(min_verifiers=3))
        manager.add_verification(prediction.prediction_id, "v4", "incorrect")

        settled = manager.get_prediction(prediction.prediction_id)
        assert settled.correct_votes == 2
        assert settled.incorrect_votes == 2
        assert settled.status == PredictionStatus.INCORRECT
        assert points(manager, "v2") == 10
        assert points(manager, "v4") == 10
        assert points(manager, "v1") == 0
        assert points(manager, "v3") == 0

    def test_tie_policy_can_favor_correct(self, db_path):
        manager = TrustManager(
            db_path=db_path,
            config=TrustConfig(min_verifiers=2, tie_outcome=PredictionStatus.CORRECT)
        )
        prediction = manager.create_prediction("claim", "author")
        manager.add_verification(prediction.prediction_id, "v1", "correct")
        manager.add_verification(prediction.prediction_id, "v2", "incorrect")
        assert manager.get_prediction(prediction.prediction_id).status == PredictionStatus.CORRECT
        assert points(manager, "author") == 50

    def test_below_quorum_stays_pending(self, manager, prediction, verify):
        verify("v1", "correct")
        verify("v2", "correct")

        assert manager.try_finalize(prediction.prediction_id) is None
        stored = manager.get_prediction(prediction.prediction_id)
        assert stored.status == PredictionStatus.PENDING
        assert stored.finalized_at is None
        assert points(manager, "author") == 0
        assert manager.ledger.get("author").pending_count == 1

        verify("v3", "correct")
        assert manager.get_prediction(prediction.prediction_id).status == PredictionStatus.CORRECT

    def test_custom_point_values(self, db_path):
        config = TrustConfig(min_verifiers=1, correct_points=75, verifier_bonus=5)
        manager = TrustManager(db_path=db_path, config=config)
        prediction = manager.create_prediction("claim", "author")
        manager.add_verification(prediction.prediction_id, "v1", "correct")
        assert points(manager, "author") == 75
        assert points(manager, "v1") == 5


class TestIdempotency:
    def test_second_finalize_is_noop(self, manager, prediction, verify):
        for wallet in ("v1", "v2", "v3"):
            verify(wallet, "correct")

        assert manager.try_finalize(prediction.prediction_id) is None
        assert manager.try_finalize(prediction.prediction_id) is None
        assert points(manager, "author") == 50
        assert manager.ledger.get("author").correct_count == 1
        assert points(manager, "v1") == 10

    def test_finalize_result(self, db_path):
        collecting = TrustManager(db_path=db_path, config=TrustConfig(min_verifiers=100))
        prediction = collecting.create_prediction("claim", "author")
        for wallet, result in (("v1", "correct"), ("v2", "correct"), ("v3", "incorrect")):
            collecting.add_verification(prediction.prediction_id, wallet, result)

        manager = TrustManager(db_path=db_path)
        result = manager.try_finalize(prediction.prediction_id)
        assert result.status == PredictionStatus.CORRECT
        assert result.author_wallet == "author"
        assert result.author_points == 50
        assert result.rewarded_verifiers == ["v1", "v2"]
        assert result.to_dict()["status"] == "correct"

    def test_missing_prediction(self, manager):
        with pytest.raises(PredictionNotFound):
            manager.try_finalize("pred_nope")

    def test_concurrent_finalize_settles_once(self, db_path):
        collecting = TrustManager(db_path=db_path, config=TrustConfig(min_verifiers=100))
        prediction = collecting.create_prediction("claim", "author")
        for wallet in ("v1", "v2", "v3"):
            collecting.add_verification(prediction.prediction_id, wallet, "correct")

        manager = TrustManager(db_path=db_path)
        results = []
        errors = []

        def worker():
            try:
                results.append(manager.try_finalize(prediction.prediction_id))
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=worker) for _ in range(6)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert len([r for r in results if r is not None]) == 1
        assert points(manager, "author") == 50
        assert manager.ledger.get("author").correct_count == 1
        assert points(manager, "v1") == 10


class TestAtomicity:
    def test_storage_error_rolls_back_settlement(self, manager, prediction, verify, monkeypatch):
        real_apply_delta = manager.ledger.apply_delta

        def failing_apply_delta(wallet, points_delta, outcome=None, conn=None):
            if wallet == "v2":
                raise StorageError("disk full")
            return real_apply_delta(wallet, points_delta, outcome, conn=conn)

        monkeypatch.setattr(manager.ledger, "apply_delta", failing_apply_delta)

        verify("v1", "correct")
        verify("v2", "correct")
        with pytest.raises(StorageError):
            verify("v3", "correct")

        # The verification itself committed, the settlement did not
        stored = manager.get_prediction(prediction.prediction_id)
        assert stored.total_verifiers == 3
        assert stored.status == PredictionStatus.PENDING
        assert stored.finalized_at is None
        assert points(manager, "author") == 0
        assert manager.ledger.get("author").correct_count == 0
        assert points(manager, "v1") == 0

        monkeypatch.setattr(manager.ledger, "apply_delta", real_apply_delta)
        result = manager.try_finalize(prediction.prediction_id)
        assert result.status == PredictionStatus.CORRECT
        assert points(manager, "author") == 50
        assert points(manager, "v1") == 10
        assert points(manager, "v2") == 10
