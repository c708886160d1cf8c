"""Tests for trust stats and migration eligibility on the manager."""

from trust import TrustManager, TrustConfig


def settle(manager, author, result, verifiers=("v1", "v2", "v3")):
    prediction = manager.create_prediction(f"{author} predicts", author)
    for wallet in verifiers:
        manager.add_verification(prediction.prediction_id, wallet, result)
    return prediction


class TestTrustStats:
    def test_new_wallet(self, manager):
        stats = manager.get_trust_stats("fresh")
        assert stats.account.total_points == 0
        assert stats.total_predictions == 0
        assert stats.total_verifications == 0
        assert stats.accuracy is None
        # Looking a wallet up creates its account
        assert manager.ledger.get("fresh") is not None

    def test_counts_and_accuracy(self, manager):
        settle(manager, "author", "correct")
        settle(manager, "author", "correct")
        settle(manager, "author", "incorrect")
        manager.create_prediction("still open", "author")

        stats = manager.get_trust_stats("author")
        assert stats.total_predictions == 4
        assert stats.correct_predictions == 2
        assert stats.incorrect_predictions == 1
        assert stats.accuracy == 67
        assert stats.account.pending_count == 1
        assert stats.account.total_points == 70

        data = stats.to_dict()
        assert data["accuracy"] == 67
        assert data["total_predictions"] == 4

    def test_counts_verifications(self, manager):
        settle(manager, "author", "correct")
        stats = manager.get_trust_stats("v1")
        assert stats.total_verifications == 1
        assert stats.total_predictions == 0
        assert stats.account.total_points == 10

    def test_trust_map(self, manager):
        manager.ledger.apply_delta("a", 200)
        accounts = manager.get_trust_map(["a", "b", ""])
        assert set(accounts) == {"a", "b"}
        assert accounts["a"].trust_level == 2
        assert accounts["b"].trust_level == 1


class TestMigrationEligibility:
    def test_new_wallet_cannot_migrate(self, manager):
        eligibility = manager.get_migration_eligibility("fresh")
        assert eligibility["can_migrate"] is False
        assert eligibility["account"].total_points == 0
        assert eligibility["account"].trust_level == 1

    def test_level_without_settled_predictions(self, manager):
        manager.ledger.apply_delta("rich", 600)
        assert manager.get_migration_eligibility("rich")["can_migrate"] is False

    def test_settled_predictions_without_level(self, manager):
        settle(manager, "author", "correct")
        assert manager.get_migration_eligibility("author")["can_migrate"] is False

    def test_eligible_after_reaching_level_three(self, manager):
        manager.ledger.apply_delta("author", 450)
        settle(manager, "author", "correct")

        eligibility = manager.get_migration_eligibility("author")
        assert eligibility["account"].total_points == 500
        assert eligibility["account"].trust_level == 3
        assert eligibility["can_migrate"] is True

    def test_incorrect_prediction_counts_as_settled(self, manager):
        manager.ledger.apply_delta("author", 200)
        settle(manager, "author", "incorrect")
        eligibility = manager.get_migration_eligibility("author")
        assert eligibility["account"].total_points == 170
        assert eligibility["can_migrate"] is True

    def test_minimum_level_is_configurable(self, db_path):
        manager = TrustManager(db_path=db_path, config=TrustConfig(migration_min_level=4))
        manager.ledger.apply_delta("author", 500)
        settle(manager, "author", "correct")
        assert manager.get_migration_eligibility("author")["can_migrate"] is False
