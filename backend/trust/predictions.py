"""
Prediction Store - Forum Trust

Creates and reads predictions. Status changes are not exposed here;
only the settlement engine moves a prediction out of pending.
"""

import sqlite3
import logging
from datetime import datetime
from typing import List, Optional, Union

from trust import database as db
from trust.errors import PredictionNotFound, PredictionAlreadySettled, ValidationError
from trust.ledger import TrustLedger
from trust.models import (
    Prediction,
    PredictionStatus,
    VerificationResult,
    ParentRef,
    PostRef,
    CommentRef,
    generate_prediction_id
)

logger = logging.getLogger(__name__)


class PredictionStore:
    """Owns prediction records."""

    def __init__(self, ledger: TrustLedger, db_path: Optional[str] = None):
        self.ledger = ledger
        self.db_path = db_path

    def create(
        self,
        content: str,
        author_wallet: str,
        parent: ParentRef = None,
        deadline: Optional[Union[datetime, str]] = None
    ) -> Prediction:
        """
        Create a pending prediction.

        The author's account is created if needed and its pending count
        incremented in the same transaction as the insert.
        """
        if not content or not content.strip():
            raise ValidationError("Prediction content is required")
        if not author_wallet:
            raise ValidationError("Author wallet is required")
        if parent is not None and not isinstance(parent, (PostRef, CommentRef)):
            raise ValidationError("Parent must be a post or comment reference")
        if parent is not None and not parent.id:
            raise ValidationError(f"{parent.kind.capitalize()} id is required")

        if isinstance(deadline, datetime):
            deadline = deadline.isoformat()

        prediction = Prediction(
            prediction_id=generate_prediction_id(),
            content=content,
            author_wallet=author_wallet,
            parent=parent,
            deadline=deadline
        )

        with db.get_connection(self.db_path, write=True) as conn:
            self.ledger.get_or_create(author_wallet, conn=conn)
            db.insert_prediction(conn, prediction)
            self.ledger.increment_pending(author_wallet, conn=conn)

        logger.info(f"Prediction {prediction.prediction_id} created by {author_wallet}")
        return prediction

    def get(self, prediction_id: str, conn: Optional[sqlite3.Connection] = None) -> Prediction:
        """Get a prediction, raising PredictionNotFound if it does not exist."""
        with db.use_connection(self.db_path, conn) as c:
            prediction = db.get_prediction(c, prediction_id)
        if prediction is None:
            raise PredictionNotFound(prediction_id)
        return prediction

    def list_predictions(
        self,
        author_wallet: Optional[str] = None,
        status: Optional[PredictionStatus] = None,
        limit: int = 20
    ) -> List[Prediction]:
        with db.use_connection(self.db_path) as conn:
            return db.list_predictions(conn, author_wallet, status, limit)

    def list_for_parent(self, parent: Union[PostRef, CommentRef]) -> List[Prediction]:
        with db.use_connection(self.db_path) as conn:
            return db.get_predictions_for_parent(conn, parent)

    def record_vote(self, conn: sqlite3.Connection, prediction_id: str, result: VerificationResult) -> None:
        """Add one verification to the prediction's tallies inside the caller's transaction."""
        if not db.increment_prediction_votes(conn, prediction_id, result):
            prediction = db.get_prediction(conn, prediction_id)
            if prediction is None:
                raise PredictionNotFound(prediction_id)
            raise PredictionAlreadySettled(prediction_id, prediction.status.value)
