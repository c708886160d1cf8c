"""Shared fixtures for the trust tests."""

import pytest

from trust import TrustManager, TrustConfig, PostRef


@pytest.fixture
def db_path(tmp_path):
    """A fresh SQLite file per test."""
    return str(tmp_path / "trust.db")


@pytest.fixture
def config():
    return TrustConfig()


@pytest.fixture
def manager(db_path, config):
    return TrustManager(db_path=db_path, config=config)


@pytest.fixture
def prediction(manager):
    """A pending prediction by "author" attached to a post."""
    return manager.create_prediction("BTC closes above 100k this year", "author", PostRef("post_1"))


@pytest.fixture
def verify(manager, prediction):
    """Submit verifications on the fixture prediction: verify("alice", "correct")."""
    def _verify(wallet, result):
        return manager.add_verification(prediction.prediction_id, wallet, result)
    return _verify
