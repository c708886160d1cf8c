"""
Verification Collector - Forum Trust

Records one verification per (prediction, verifier) and hands the
prediction to the settlement engine after every accepted verification.
"""

import sqlite3
import logging
from typing import List, Optional, Union

from trust import database as db
from trust.errors import (
    PredictionNotFound,
    SelfVerificationForbidden,
    PredictionAlreadySettled,
    DuplicateVerification,
    ValidationError
)
from trust.ledger import TrustLedger
from trust.predictions import PredictionStore
from trust.settlement import SettlementEngine
from trust.models import (
    Verification,
    VerificationResult,
    generate_verification_id
)

logger = logging.getLogger(__name__)


def parse_result(result: Union[str, VerificationResult]) -> VerificationResult:
    """Accept "correct"/"incorrect" or the enum itself."""
    if isinstance(result, VerificationResult):
        return result
    try:
        return VerificationResult(result)
    except ValueError:
        raise ValidationError(f"Result must be 'correct' or 'incorrect', got {result!r}") from None


class VerificationCollector:
    """Accepts verifications and triggers settlement."""

    def __init__(
        self,
        ledger: TrustLedger,
        predictions: PredictionStore,
        settlement: SettlementEngine,
        db_path: Optional[str] = None
    ):
        self.ledger = ledger
        self.predictions = predictions
        self.settlement = settlement
        self.db_path = db_path

    def add_verification(
        self,
        prediction_id: str,
        verifier_wallet: str,
        result: Union[str, VerificationResult]
    ) -> Verification:
        """
        Record a verifier's judgment on a pending prediction.

        Raises, in this order of checking: ValidationError for a bad result
        value, PredictionNotFound, SelfVerificationForbidden,
        PredictionAlreadySettled, DuplicateVerification. The insert and the
        vote tally update commit together; settlement is attempted
        afterwards in its own transaction.
        """
        result = parse_result(result)
        if not verifier_wallet:
            raise ValidationError("Verifier wallet is required")

        with db.get_connection(self.db_path, write=True) as conn:
            prediction = self.predictions.get(prediction_id, conn=conn)

            if prediction.author_wallet == verifier_wallet:
                logger.warning(f"Rejected self-verification of {prediction_id} by {verifier_wallet}")
                raise SelfVerificationForbidden(prediction_id, verifier_wallet)

            if not prediction.is_pending:
                raise PredictionAlreadySettled(prediction_id, prediction.status.value)

            if db.get_verification(conn, prediction_id, verifier_wallet):
                logger.warning(f"Rejected duplicate verification of {prediction_id} by {verifier_wallet}")
                raise DuplicateVerification(prediction_id, verifier_wallet)

            verifier = self.ledger.get_or_create(verifier_wallet, conn=conn)

            verification = Verification(
                verification_id=generate_verification_id(),
                prediction_id=prediction_id,
                verifier_wallet=verifier_wallet,
                result=result,
                verifier_trust=verifier.trust_level
            )

            try:
                db.insert_verification(conn, verification)
            except sqlite3.IntegrityError:
                raise DuplicateVerification(prediction_id, verifier_wallet) from None

            self.predictions.record_vote(conn, prediction_id, result)

        logger.info(
            f"Verification {verification.verification_id}: {verifier_wallet} marked "
            f"{prediction_id} {result.value} (trust level {verification.verifier_trust})"
        )

        self.settlement.try_finalize(prediction_id)
        return verification

    def get(self, prediction_id: str, verifier_wallet: str) -> Optional[Verification]:
        """Get a wallet's verification of a prediction, if any."""
        with db.use_connection(self.db_path) as conn:
            return db.get_verification(conn, prediction_id, verifier_wallet)

    def list_for_prediction(self, prediction_id: str) -> List[Verification]:
        with db.use_connection(self.db_path) as conn:
            if db.get_prediction(conn, prediction_id) is None:
                raise PredictionNotFound(prediction_id)
            return db.list_verifications(conn, prediction_id)
