"""
Settlement Engine - Forum Trust

Decides when a prediction has enough verifications, settles it by majority
vote and pays out reputation:

    pending --(quorum reached)--> correct | incorrect

Both end states are terminal. Settlement runs right after every
verification rather than on a timer, so two verifiers crossing the quorum
at the same moment can both trigger it. The conditional status update in
database.settle_prediction makes the second attempt a no-op.
"""

import logging
from typing import Optional

from trust import database as db
from trust.errors import PredictionNotFound
from trust.ledger import TrustLedger
from trust.models import (
    TrustConfig,
    PredictionStatus,
    VerificationResult,
    Outcome,
    SettlementResult,
    utc_now
)

logger = logging.getLogger(__name__)


def decide_outcome(
    correct_votes: int,
    incorrect_votes: int,
    tie_outcome: PredictionStatus = PredictionStatus.INCORRECT
) -> PredictionStatus:
    """Majority status for a vote tally. Ties settle as ``tie_outcome``."""
    if correct_votes > incorrect_votes:
        return PredictionStatus.CORRECT
    if correct_votes < incorrect_votes:
        return PredictionStatus.INCORRECT
    return tie_outcome


class SettlementEngine:
    """Finalizes predictions and applies the resulting point changes."""

    def __init__(self, ledger: TrustLedger, config: Optional[TrustConfig] = None, db_path: Optional[str] = None):
        self.ledger = ledger
        self.config = config or TrustConfig()
        self.db_path = db_path

        if self.config.tie_outcome == PredictionStatus.PENDING:
            raise ValueError("tie_outcome must be a settled status")

    def has_quorum(self, total_verifiers: int) -> bool:
        return total_verifiers >= self.config.min_verifiers

    def author_points(self, status: PredictionStatus) -> int:
        if status == PredictionStatus.CORRECT:
            return self.config.correct_points
        return self.config.incorrect_points

    def try_finalize(self, prediction_id: str) -> Optional[SettlementResult]:
        """
        Settle the prediction if it is pending and has reached quorum.

        Returns None when there was nothing to do (already settled, below
        quorum, or another caller settled it first). The status change,
        the author's delta and every verifier bonus commit together or not
        at all; a storage failure leaves the prediction pending.
        """
        with db.get_connection(self.db_path, write=True) as conn:
            prediction = db.get_prediction(conn, prediction_id)
            if prediction is None:
                raise PredictionNotFound(prediction_id)

            if not prediction.is_pending:
                return None

            if not self.has_quorum(prediction.total_verifiers):
                logger.debug(
                    f"Prediction {prediction_id} has {prediction.total_verifiers}/"
                    f"{self.config.min_verifiers} verifiers, not settling"
                )
                return None

            new_status = decide_outcome(
                prediction.correct_votes,
                prediction.incorrect_votes,
                self.config.tie_outcome
            )
            finalized_at = utc_now()

            if not db.settle_prediction(conn, prediction_id, new_status, finalized_at):
                return None

            points = self.author_points(new_status)
            outcome = Outcome.CORRECT if new_status == PredictionStatus.CORRECT else Outcome.INCORRECT
            self.ledger.apply_delta(prediction.author_wallet, points, outcome, conn=conn)

            # Verifiers on the majority side get the bonus, the rest get nothing
            winning_result = VerificationResult(new_status.value)
            rewarded = []
            for verification in db.list_verifications(conn, prediction_id):
                if verification.result == winning_result:
                    self.ledger.apply_delta(
                        verification.verifier_wallet,
                        self.config.verifier_bonus,
                        Outcome.NONE,
                        conn=conn
                    )
                    rewarded.append(verification.verifier_wallet)

        logger.info(
            f"Prediction {prediction_id} settled {new_status.value} "
            f"({prediction.correct_votes} vs {prediction.incorrect_votes}), "
            f"author {prediction.author_wallet} {points:+d}, {len(rewarded)} verifier(s) rewarded"
        )

        return SettlementResult(
            prediction_id=prediction_id,
            status=new_status,
            author_wallet=prediction.author_wallet,
            author_points=points,
            rewarded_verifiers=rewarded,
            finalized_at=finalized_at
        )
