"""
Trust Manager - Forum Trust

Entry point used by the forum's post/comment handlers and the API:
- Create predictions
- Submit verifications (settlement runs automatically)
- Read trust accounts and stats
- Check SBT migration eligibility
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional, Union, Iterable

from trust import database as db
from trust.ledger import TrustLedger
from trust.predictions import PredictionStore
from trust.settlement import SettlementEngine
from trust.verifications import VerificationCollector
from trust.models import (
    TrustConfig,
    TrustAccount,
    TrustStats,
    Prediction,
    PredictionStatus,
    Verification,
    VerificationResult,
    SettlementResult,
    ParentRef,
    PostRef,
    CommentRef
)

logger = logging.getLogger(__name__)


class TrustManager:
    """
    Wires the ledger, prediction store, verification collector and
    settlement engine over one SQLite database.
    """

    def __init__(self, db_path: Optional[str] = None, config: Optional[TrustConfig] = None):
        self.db_path = db_path
        self.config = config or TrustConfig()

        db.init_database(self.db_path)

        self.ledger = TrustLedger(self.db_path)
        self.predictions = PredictionStore(self.ledger, self.db_path)
        self.settlement = SettlementEngine(self.ledger, self.config, self.db_path)
        self.verifications = VerificationCollector(
            self.ledger, self.predictions, self.settlement, self.db_path
        )

        logger.info(f"Trust manager initialized (min_verifiers={self.config.min_verifiers})")

    # ==================== PREDICTIONS ====================

    def create_prediction(
        self,
        content: str,
        author_wallet: str,
        parent: ParentRef = None,
        deadline: Optional[Union[datetime, str]] = None
    ) -> Prediction:
        """Create a pending prediction for a post or comment."""
        return self.predictions.create(content, author_wallet, parent, deadline)

    def get_prediction(self, prediction_id: str) -> Prediction:
        return self.predictions.get(prediction_id)

    def list_predictions(
        self,
        author_wallet: Optional[str] = None,
        status: Optional[PredictionStatus] = None,
        limit: int = 20
    ) -> List[Prediction]:
        return self.predictions.list_predictions(author_wallet, status, limit)

    def get_predictions_for_post(self, post_id: str) -> List[Prediction]:
        return self.predictions.list_for_parent(PostRef(post_id))

    def get_predictions_for_comment(self, comment_id: str) -> List[Prediction]:
        return self.predictions.list_for_parent(CommentRef(comment_id))

    # ==================== VERIFICATIONS ====================

    def add_verification(
        self,
        prediction_id: str,
        verifier_wallet: str,
        result: Union[str, VerificationResult]
    ) -> Verification:
        """Verify a prediction; settles it once quorum is reached."""
        return self.verifications.add_verification(prediction_id, verifier_wallet, result)

    def get_verifications(self, prediction_id: str) -> List[Verification]:
        return self.verifications.list_for_prediction(prediction_id)

    def get_user_verification(self, prediction_id: str, wallet: str) -> Optional[Verification]:
        return self.verifications.get(prediction_id, wallet)

    def try_finalize(self, prediction_id: str) -> Optional[SettlementResult]:
        return self.settlement.try_finalize(prediction_id)

    # ==================== TRUST ====================

    def get_or_create_trust(self, wallet: str) -> TrustAccount:
        return self.ledger.get_or_create(wallet)

    def get_trust_map(self, wallets: Iterable[str]) -> Dict[str, TrustAccount]:
        """Get or create accounts for several wallets, skipping empty entries."""
        return {wallet: self.ledger.get_or_create(wallet) for wallet in wallets if wallet}

    def get_trust_stats(self, wallet: str) -> TrustStats:
        """A wallet's account with prediction, verification and accuracy figures."""
        with db.get_connection(self.db_path, write=True) as conn:
            account = self.ledger.get_or_create(wallet, conn=conn)
            return TrustStats(
                account=account,
                total_predictions=db.count_predictions(conn, wallet),
                total_verifications=db.count_verifications(conn, wallet),
                correct_predictions=db.count_predictions(conn, wallet, PredictionStatus.CORRECT),
                incorrect_predictions=db.count_predictions(conn, wallet, PredictionStatus.INCORRECT)
            )

    # ==================== MIGRATION ====================

    def is_migration_eligible(self, account: TrustAccount) -> bool:
        """Level 2 or above with at least one settled prediction."""
        if account.trust_level < self.config.migration_min_level:
            return False
        return account.settled_count >= 1

    def get_migration_eligibility(self, wallet: str) -> Dict:
        account = self.ledger.get_or_create(wallet)
        return {
            "can_migrate": self.is_migration_eligible(account),
            "account": account
        }
