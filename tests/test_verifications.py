"""Tests for the verification collector."""

import threading

import pytest

from trust import (
    TrustManager,
    TrustConfig,
    VerificationResult,
    PredictionStatus,
    PredictionNotFound,
    SelfVerificationForbidden,
    PredictionAlreadySettled,
    DuplicateVerification,
    ValidationError,
    ConflictError,
)


class TestAddVerification:
    def test_records_verification(self, manager, prediction, verify):
        verification = verify("alice", "correct")
        assert verification.prediction_id == prediction.prediction_id
        assert verification.verifier_wallet == "alice"
        assert verification.result == VerificationResult.CORRECT
        assert verification.verification_id.startswith("ver_")

    def test_updates_tallies(self, manager, prediction, verify):
        verify("alice", "correct")
        verify("bob", VerificationResult.INCORRECT)
        stored = manager.get_prediction(prediction.prediction_id)
        assert stored.correct_votes == 1
        assert stored.incorrect_votes == 1
        assert stored.total_verifiers == 2
        assert stored.status == PredictionStatus.PENDING

    def test_creates_verifier_account_without_points(self, manager, verify):
        verify("newcomer", "incorrect")
        account = manager.ledger.get("newcomer")
        assert account is not None
        assert account.total_points == 0

    def test_snapshots_verifier_trust_level(self, manager, prediction, verify):
        manager.ledger.apply_delta("veteran", 1200)
        verification = verify("veteran", "correct")
        assert verification.verifier_trust == 4

        # Later point changes do not rewrite the snapshot
        manager.ledger.apply_delta("veteran", -1200)
        stored = manager.get_user_verification(prediction.prediction_id, "veteran")
        assert stored.verifier_trust == 4

    def test_lists_verifications_in_order(self, manager, prediction, verify):
        verify("alice", "correct")
        verify("bob", "incorrect")
        wallets = [v.verifier_wallet for v in manager.get_verifications(prediction.prediction_id)]
        assert wallets == ["alice", "bob"]

    def test_user_verification_missing(self, manager, prediction):
        assert manager.get_user_verification(prediction.prediction_id, "nobody") is None


class TestVerificationRejections:
    def test_unknown_prediction(self, manager):
        with pytest.raises(PredictionNotFound):
            manager.add_verification("pred_nope", "alice", "correct")

    def test_self_verification(self, manager, prediction):
        with pytest.raises(SelfVerificationForbidden) as exc_info:
            manager.add_verification(prediction.prediction_id, prediction.author_wallet, "correct")
        assert isinstance(exc_info.value, ConflictError)
        assert manager.get_prediction(prediction.prediction_id).total_verifiers == 0

    def test_self_verification_checked_before_settled(self, manager, prediction, verify):
        for wallet in ("a", "b", "c"):
            verify(wallet, "correct")
        with pytest.raises(SelfVerificationForbidden):
            verify(prediction.author_wallet, "correct")

    def test_settled_prediction(self, manager, prediction, verify):
        for wallet in ("a", "b", "c"):
            verify(wallet, "correct")
        with pytest.raises(PredictionAlreadySettled) as exc_info:
            verify("d", "incorrect")
        assert exc_info.value.status == "correct"
        assert manager.get_prediction(prediction.prediction_id).total_verifiers == 3

    def test_duplicate_leaves_counts_unchanged(self, manager, prediction, verify):
        verify("alice", "correct")
        with pytest.raises(DuplicateVerification) as exc_info:
            verify("alice", "incorrect")
        assert exc_info.value.kind == "conflict"

        stored = manager.get_prediction(prediction.prediction_id)
        assert stored.correct_votes == 1
        assert stored.incorrect_votes == 0
        assert stored.total_verifiers == 1
        assert len(manager.get_verifications(prediction.prediction_id)) == 1

    @pytest.mark.parametrize("result", ["maybe", "", "CORRECT", None])
    def test_invalid_result(self, manager, prediction, result):
        with pytest.raises(ValidationError):
            manager.add_verification(prediction.prediction_id, "alice", result)
        assert manager.get_prediction(prediction.prediction_id).total_verifiers == 0

    def test_missing_wallet(self, manager, prediction):
        with pytest.raises(ValidationError):
            manager.add_verification(prediction.prediction_id, "", "correct")

    def test_list_for_unknown_prediction(self, manager):
        with pytest.raises(PredictionNotFound):
            manager.get_verifications("pred_nope")


class TestConcurrentVerifications:
    def test_racing_duplicates_accept_exactly_one(self, db_path):
        # High quorum keeps the prediction pending throughout
        manager = TrustManager(db_path=db_path, config=TrustConfig(min_verifiers=100))
        prediction = manager.create_prediction("claim", "author")
        successes = []
        duplicates = []
        other = []

        def worker():
            try:
                successes.append(manager.add_verification(prediction.prediction_id, "racer", "correct"))
            except DuplicateVerification as e:
                duplicates.append(e)
            except Exception as e:
                other.append(e)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert other == []
        assert len(successes) == 1
        assert len(duplicates) == 7
        assert manager.get_prediction(prediction.prediction_id).total_verifiers == 1
