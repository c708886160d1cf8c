"""
Trust Ledger - Forum Trust

Owns every wallet's point balance, trust level and prediction counters.
The level is never stored independently: each write recomputes it from
the clamped point balance.
"""

import sqlite3
import logging
from typing import List, Optional

from trust import database as db
from trust.models import TrustAccount, Outcome, level_from_points

logger = logging.getLogger(__name__)


class TrustLedger:
    """Reads and mutates trust accounts."""

    def __init__(self, db_path: Optional[str] = None):
        self.db_path = db_path

    def get_or_create(self, wallet: str, conn: Optional[sqlite3.Connection] = None) -> TrustAccount:
        """Return the wallet's account, creating a zero-point level 1 account if absent."""
        with db.use_connection(self.db_path, conn, write=True) as c:
            if db.insert_account(c, wallet):
                logger.info(f"Created trust account for {wallet}")
            return db.get_account(c, wallet)

    def get(self, wallet: str, conn: Optional[sqlite3.Connection] = None) -> Optional[TrustAccount]:
        """Return the wallet's account without creating one."""
        with db.use_connection(self.db_path, conn) as c:
            return db.get_account(c, wallet)

    def apply_delta(
        self,
        wallet: str,
        points_delta: int,
        outcome: Outcome = Outcome.NONE,
        conn: Optional[sqlite3.Connection] = None
    ) -> TrustAccount:
        """
        Add points to a wallet and write the account back in one step.

        Points are clamped at zero and the level is recomputed. A CORRECT or
        INCORRECT outcome settles one of the wallet's pending predictions:
        the matching counter goes up and pending_count goes down (never
        below zero). Outcome.NONE only moves points.

        Without ``conn`` the read-modify-write runs in its own write
        transaction, so concurrent deltas for one wallet serialize.
        """
        with db.use_connection(self.db_path, conn, write=True) as c:
            db.insert_account(c, wallet)
            account = db.get_account(c, wallet)

            account.total_points = max(0, account.total_points + points_delta)
            account.trust_level = level_from_points(account.total_points)

            if outcome == Outcome.CORRECT:
                account.correct_count += 1
            elif outcome == Outcome.INCORRECT:
                account.incorrect_count += 1

            if outcome != Outcome.NONE:
                account.pending_count = max(0, account.pending_count - 1)

            db.update_account(c, account)

        logger.debug(
            f"Applied {points_delta:+d} to {wallet}: {account.total_points} pts, "
            f"level {account.trust_level}, outcome {outcome.value}"
        )
        return account

    def increment_pending(self, wallet: str, conn: Optional[sqlite3.Connection] = None) -> TrustAccount:
        """Count one more unsettled prediction for the wallet."""
        with db.use_connection(self.db_path, conn, write=True) as c:
            db.insert_account(c, wallet)
            account = db.get_account(c, wallet)
            account.pending_count += 1
            db.update_account(c, account)
        return account

    def list_accounts(self, min_level: int = 1) -> List[TrustAccount]:
        with db.use_connection(self.db_path) as c:
            return db.list_accounts(c, min_level)

    @staticmethod
    def level_from_points(points: int) -> int:
        return level_from_points(points)
