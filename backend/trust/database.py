"""
SQLite Database for Forum Trust
Provides persistent storage for trust accounts, predictions and verifications.

Every operation takes an open connection so callers can group several
writes into one transaction. Write transactions start with BEGIN IMMEDIATE,
which takes SQLite's write lock up front and serializes concurrent writers.
"""

import os
import sqlite3
import logging
from contextlib import contextmanager
from typing import Optional, List, Union

from trust.errors import StorageError
from trust.models import (
    TrustAccount,
    Prediction,
    PredictionStatus,
    Verification,
    VerificationResult,
    PostRef,
    CommentRef,
    level_from_points,
    utc_now
)

logger = logging.getLogger(__name__)

# Database file path - use environment variable or fallback to local storage
DEFAULT_DB_PATH = os.path.join(os.path.dirname(os.path.dirname(__file__)), "storage", "trust.db")
DB_PATH = os.environ.get("TRUST_DB_PATH") or DEFAULT_DB_PATH

# Seconds a writer waits for the lock before SQLite reports "database is locked"
BUSY_TIMEOUT = float(os.environ.get("TRUST_DB_TIMEOUT", "30"))


def get_db_path(db_path: Optional[str] = None) -> str:
    """Get database path, ensuring directory exists."""
    db_path = db_path or DB_PATH
    db_dir = os.path.dirname(db_path)
    if db_dir and not os.path.exists(db_dir):
        os.makedirs(db_dir, exist_ok=True)
    return db_path


@contextmanager
def get_connection(db_path: Optional[str] = None, write: bool = False):
    """
    Context manager for one database transaction.

    Commits on success. Any failure rolls the whole transaction back;
    sqlite3 errors surface as StorageError, everything else is re-raised.
    """
    try:
        conn = sqlite3.connect(get_db_path(db_path), timeout=BUSY_TIMEOUT, isolation_level=None)
    except sqlite3.Error as e:
        logger.error(f"Could not open trust database: {e}")
        raise StorageError(f"Could not open database: {e}") from e

    conn.row_factory = sqlite3.Row
    try:
        conn.execute("PRAGMA foreign_keys = ON")
        conn.execute("BEGIN IMMEDIATE" if write else "BEGIN")
        yield conn
        conn.execute("COMMIT")
    except sqlite3.Error as e:
        _rollback(conn)
        logger.error(f"Trust database transaction failed: {e}")
        raise StorageError(f"Database error: {e}") from e
    except Exception:
        _rollback(conn)
        raise
    finally:
        conn.close()


@contextmanager
def use_connection(db_path: Optional[str] = None, conn: Optional[sqlite3.Connection] = None, write: bool = False):
    """Reuse the caller's transaction if there is one, otherwise open a new one."""
    if conn is not None:
        yield conn
    else:
        with get_connection(db_path, write=write) as new_conn:
            yield new_conn


def _rollback(conn: sqlite3.Connection):
    if conn.in_transaction:
        conn.rollback()


def init_database(db_path: Optional[str] = None):
    """Initialize the database schema."""
    with get_connection(db_path, write=True) as conn:
        cursor = conn.cursor()

        # Trust accounts table
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS trust_accounts (
                wallet TEXT PRIMARY KEY,
                total_points INTEGER NOT NULL DEFAULT 0 CHECK (total_points >= 0),
                trust_level INTEGER NOT NULL DEFAULT 1 CHECK (trust_level BETWEEN 1 AND 5),
                correct_count INTEGER NOT NULL DEFAULT 0,
                incorrect_count INTEGER NOT NULL DEFAULT 0,
                pending_count INTEGER NOT NULL DEFAULT 0 CHECK (pending_count >= 0),
                created_at TEXT NOT NULL,
                updated_at TEXT
            )
        """)

        # Predictions table
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS predictions (
                prediction_id TEXT PRIMARY KEY,
                content TEXT NOT NULL,
                author_wallet TEXT NOT NULL,
                parent_kind TEXT CHECK (parent_kind IN ('post', 'comment')),
                parent_id TEXT,
                deadline TEXT,
                status TEXT NOT NULL DEFAULT 'pending',  -- 'pending', 'correct' or 'incorrect'
                correct_votes INTEGER NOT NULL DEFAULT 0,
                incorrect_votes INTEGER NOT NULL DEFAULT 0,
                total_verifiers INTEGER NOT NULL DEFAULT 0,
                created_at TEXT NOT NULL,
                updated_at TEXT,
                finalized_at TEXT,
                FOREIGN KEY (author_wallet) REFERENCES trust_accounts(wallet),
                CHECK ((parent_kind IS NULL) = (parent_id IS NULL))
            )
        """)

        # Verifications table
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS verifications (
                verification_id TEXT PRIMARY KEY,
                prediction_id TEXT NOT NULL,
                verifier_wallet TEXT NOT NULL,
                result TEXT NOT NULL,  -- 'correct' or 'incorrect'
                verifier_trust INTEGER NOT NULL,
                created_at TEXT NOT NULL,
                FOREIGN KEY (prediction_id) REFERENCES predictions(prediction_id),
                UNIQUE(prediction_id, verifier_wallet)
            )
        """)

        # Create indexes
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_predictions_author ON predictions(author_wallet)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_predictions_status ON predictions(status)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_verifications_verifier ON verifications(verifier_wallet)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_accounts_level ON trust_accounts(trust_level)")


# ==================== TRUST ACCOUNT OPERATIONS ====================

def get_account(conn: sqlite3.Connection, wallet: str) -> Optional[TrustAccount]:
    """Get a trust account by wallet."""
    row = conn.execute("SELECT * FROM trust_accounts WHERE wallet = ?", (wallet,)).fetchone()
    if row:
        return TrustAccount.from_row(row)
    return None


def insert_account(conn: sqlite3.Connection, wallet: str) -> bool:
    """Insert a default account. Returns False if the wallet already has one."""
    cursor = conn.execute("""
        INSERT OR IGNORE INTO trust_accounts (wallet, total_points, trust_level, created_at)
        VALUES (?, 0, ?, ?)
    """, (wallet, level_from_points(0), utc_now()))
    return cursor.rowcount > 0


def update_account(conn: sqlite3.Connection, account: TrustAccount) -> bool:
    """Write every mutable field of an account."""
    account.updated_at = utc_now()
    cursor = conn.execute("""
        UPDATE trust_accounts
        SET total_points = ?, trust_level = ?, correct_count = ?,
            incorrect_count = ?, pending_count = ?, updated_at = ?
        WHERE wallet = ?
    """, (
        account.total_points,
        account.trust_level,
        account.correct_count,
        account.incorrect_count,
        account.pending_count,
        account.updated_at,
        account.wallet
    ))
    return cursor.rowcount > 0


def list_accounts(conn: sqlite3.Connection, min_level: int = 1) -> List[TrustAccount]:
    """Get all accounts at or above a trust level."""
    rows = conn.execute("""
        SELECT * FROM trust_accounts
        WHERE trust_level >= ?
        ORDER BY total_points DESC, wallet
    """, (min_level,)).fetchall()
    return [TrustAccount.from_row(row) for row in rows]


# ==================== PREDICTION OPERATIONS ====================

def insert_prediction(conn: sqlite3.Connection, prediction: Prediction) -> str:
    """Insert a new prediction."""
    parent_kind = prediction.parent.kind if prediction.parent else None
    parent_id = prediction.parent.id if prediction.parent else None
    conn.execute("""
        INSERT INTO predictions (
            prediction_id, content, author_wallet, parent_kind, parent_id,
            deadline, status, correct_votes, incorrect_votes, total_verifiers,
            created_at
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
    """, (
        prediction.prediction_id,
        prediction.content,
        prediction.author_wallet,
        parent_kind,
        parent_id,
        prediction.deadline,
        prediction.status.value,
        prediction.correct_votes,
        prediction.incorrect_votes,
        prediction.total_verifiers,
        prediction.created_at
    ))
    return prediction.prediction_id


def get_prediction(conn: sqlite3.Connection, prediction_id: str) -> Optional[Prediction]:
    """Get a prediction by ID."""
    row = conn.execute("SELECT * FROM predictions WHERE prediction_id = ?", (prediction_id,)).fetchone()
    if row:
        return Prediction.from_row(row)
    return None


def list_predictions(
    conn: sqlite3.Connection,
    author_wallet: Optional[str] = None,
    status: Optional[PredictionStatus] = None,
    limit: int = 20
) -> List[Prediction]:
    """Get predictions, newest first, optionally filtered by author and status."""
    clauses = []
    params: list = []
    if author_wallet:
        clauses.append("author_wallet = ?")
        params.append(author_wallet)
    if status:
        clauses.append("status = ?")
        params.append(status.value)

    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
    params.append(limit)
    rows = conn.execute(
        f"SELECT * FROM predictions {where} ORDER BY created_at DESC, rowid DESC LIMIT ?",
        params
    ).fetchall()
    return [Prediction.from_row(row) for row in rows]


def get_predictions_for_parent(conn: sqlite3.Connection, parent: Union[PostRef, CommentRef]) -> List[Prediction]:
    """Get predictions attached to a post or comment."""
    rows = conn.execute(
        "SELECT * FROM predictions WHERE parent_kind = ? AND parent_id = ? ORDER BY created_at",
        (parent.kind, parent.id)
    ).fetchall()
    return [Prediction.from_row(row) for row in rows]


def increment_prediction_votes(conn: sqlite3.Connection, prediction_id: str, result: VerificationResult) -> bool:
    """Count one more verification on a pending prediction."""
    column = "correct_votes" if result == VerificationResult.CORRECT else "incorrect_votes"
    cursor = conn.execute(f"""
        UPDATE predictions
        SET {column} = {column} + 1,
            total_verifiers = total_verifiers + 1,
            updated_at = ?
        WHERE prediction_id = ? AND status = 'pending'
    """, (utc_now(), prediction_id))
    return cursor.rowcount > 0


def settle_prediction(
    conn: sqlite3.Connection,
    prediction_id: str,
    status: PredictionStatus,
    finalized_at: str
) -> bool:
    """
    Move a prediction out of pending.

    The WHERE clause is the compare-and-set: only the first caller gets a
    row back, later callers see zero rows and must treat it as a no-op.
    """
    cursor = conn.execute("""
        UPDATE predictions
        SET status = ?, finalized_at = ?, updated_at = ?
        WHERE prediction_id = ? AND status = 'pending'
    """, (status.value, finalized_at, finalized_at, prediction_id))
    return cursor.rowcount == 1


def count_predictions(conn: sqlite3.Connection, author_wallet: str, status: Optional[PredictionStatus] = None) -> int:
    """Count a wallet's predictions, optionally in one status."""
    if status:
        row = conn.execute(
            "SELECT COUNT(*) FROM predictions WHERE author_wallet = ? AND status = ?",
            (author_wallet, status.value)
        ).fetchone()
    else:
        row = conn.execute(
            "SELECT COUNT(*) FROM predictions WHERE author_wallet = ?",
            (author_wallet,)
        ).fetchone()
    return row[0]


# ==================== VERIFICATION OPERATIONS ====================

def insert_verification(conn: sqlite3.Connection, verification: Verification) -> str:
    """Insert a verification. Raises sqlite3.IntegrityError on a repeated (prediction, wallet) pair."""
    conn.execute("""
        INSERT INTO verifications (verification_id, prediction_id, verifier_wallet, result, verifier_trust, created_at)
        VALUES (?, ?, ?, ?, ?, ?)
    """, (
        verification.verification_id,
        verification.prediction_id,
        verification.verifier_wallet,
        verification.result.value,
        verification.verifier_trust,
        verification.created_at
    ))
    return verification.verification_id


def get_verification(conn: sqlite3.Connection, prediction_id: str, verifier_wallet: str) -> Optional[Verification]:
    """Get a wallet's verification of a prediction."""
    row = conn.execute(
        "SELECT * FROM verifications WHERE prediction_id = ? AND verifier_wallet = ?",
        (prediction_id, verifier_wallet)
    ).fetchone()
    if row:
        return Verification.from_row(row)
    return None


def list_verifications(conn: sqlite3.Connection, prediction_id: str) -> List[Verification]:
    """Get all verifications for a prediction, oldest first."""
    rows = conn.execute(
        "SELECT * FROM verifications WHERE prediction_id = ? ORDER BY created_at, rowid",
        (prediction_id,)
    ).fetchall()
    return [Verification.from_row(row) for row in rows]


def count_verifications(conn: sqlite3.Connection, verifier_wallet: str) -> int:
    """Count verifications submitted by a wallet."""
    row = conn.execute(
        "SELECT COUNT(*) FROM verifications WHERE verifier_wallet = ?",
        (verifier_wallet,)
    ).fetchone()
    return row[0]
