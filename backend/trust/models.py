"""
Trust Data Models - Forum Trust

Data models for wallet reputation, predictions and crowd verification.
Authors flag claims as predictions, the community verifies them and the
majority outcome feeds each wallet's trust score.
"""

import os
import math
import uuid
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional, Any, Union


# ==================== ENUMS ====================

class PredictionStatus(Enum):
    """Prediction lifecycle status."""
    PENDING = "pending"        # Collecting verifications
    CORRECT = "correct"        # Majority said the prediction came true
    INCORRECT = "incorrect"    # Majority said it did not (ties land here by default)


class VerificationResult(Enum):
    """A verifier's judgment on a prediction."""
    CORRECT = "correct"
    INCORRECT = "incorrect"


class Outcome(Enum):
    """Outcome tag attached to a ledger delta."""
    CORRECT = "correct"
    INCORRECT = "incorrect"
    NONE = "none"


# ==================== CONFIG ====================

@dataclass
class TrustConfig:
    """Configuration for settlement and reputation."""
    # Quorum
    min_verifiers: int = 3             # Verifications needed before settling

    # Author points
    correct_points: int = 50           # Prediction judged correct
    incorrect_points: int = -30        # Prediction judged incorrect

    # Verifier points
    verifier_bonus: int = 10           # Paid to verifiers on the majority side

    # Equal correct/incorrect votes settle as this status
    tie_outcome: PredictionStatus = PredictionStatus.INCORRECT

    # SBT migration
    migration_min_level: int = 2

    @classmethod
    def from_env(cls) -> "TrustConfig":
        """Build a config, overriding defaults from TRUST_* environment variables."""
        defaults = cls()
        return cls(
            min_verifiers=int(os.getenv("TRUST_MIN_VERIFIERS", defaults.min_verifiers)),
            correct_points=int(os.getenv("TRUST_CORRECT_POINTS", defaults.correct_points)),
            incorrect_points=int(os.getenv("TRUST_INCORRECT_POINTS", defaults.incorrect_points)),
            verifier_bonus=int(os.getenv("TRUST_VERIFIER_BONUS", defaults.verifier_bonus)),
        )


# ==================== TRUST LEVELS ====================

# (level, min_points, name), highest first
LEVEL_THRESHOLDS = (
    (5, 2500, "Oracle"),
    (4, 1000, "Expert"),
    (3, 500, "Trusted"),
    (2, 100, "Apprentice"),
    (1, 0, "Newcomer"),
)


def level_from_points(points: int) -> int:
    """Trust level for a point balance."""
    for level, min_points, _ in LEVEL_THRESHOLDS:
        if points >= min_points:
            return level
    return 1


def get_trust_level_info(level: int) -> Dict[str, Any]:
    """Display info for a trust level, falling back to level 1."""
    levels = get_trust_levels()
    for info in levels:
        if info["level"] == level:
            return info
    return levels[0]


def get_trust_levels() -> List[Dict[str, Any]]:
    """The full level table, lowest first."""
    table = []
    ordered = list(reversed(LEVEL_THRESHOLDS))
    for i, (level, min_points, name) in enumerate(ordered):
        max_points = ordered[i + 1][1] - 1 if i + 1 < len(ordered) else None
        table.append({
            "level": level,
            "name": name,
            "min_points": min_points,
            "max_points": max_points
        })
    return table


# ==================== ID GENERATORS ====================

def generate_id(prefix: str = "") -> str:
    """Generate a unique ID."""
    return f"{prefix}{uuid.uuid4().hex[:12]}"


def generate_prediction_id() -> str:
    return generate_id("pred_")


def generate_verification_id() -> str:
    return generate_id("ver_")


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


# ==================== PARENT REFERENCES ====================

@dataclass(frozen=True)
class PostRef:
    """Prediction attached to a post."""
    id: str
    kind: str = field(default="post", init=False)


@dataclass(frozen=True)
class CommentRef:
    """Prediction attached to a comment."""
    id: str
    kind: str = field(default="comment", init=False)


ParentRef = Optional[Union[PostRef, CommentRef]]


def parent_from_columns(kind: Optional[str], parent_id: Optional[str]) -> ParentRef:
    if kind == "post":
        return PostRef(parent_id)
    if kind == "comment":
        return CommentRef(parent_id)
    return None


# ==================== DATA MODELS ====================

@dataclass
class TrustAccount:
    """Reputation balance for one wallet."""
    wallet: str
    total_points: int = 0
    trust_level: int = 1
    correct_count: int = 0
    incorrect_count: int = 0
    pending_count: int = 0
    created_at: str = field(default_factory=utc_now)
    updated_at: Optional[str] = None

    @property
    def settled_count(self) -> int:
        return self.correct_count + self.incorrect_count

    @property
    def level_name(self) -> str:
        return get_trust_level_info(self.trust_level)["name"]

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "TrustAccount":
        return cls(
            wallet=row["wallet"],
            total_points=row["total_points"],
            trust_level=row["trust_level"],
            correct_count=row["correct_count"],
            incorrect_count=row["incorrect_count"],
            pending_count=row["pending_count"],
            created_at=row["created_at"],
            updated_at=row["updated_at"]
        )

    def to_dict(self) -> Dict:
        return {
            "wallet": self.wallet,
            "total_points": self.total_points,
            "trust_level": self.trust_level,
            "level_name": self.level_name,
            "correct_count": self.correct_count,
            "incorrect_count": self.incorrect_count,
            "pending_count": self.pending_count,
            "created_at": self.created_at,
            "updated_at": self.updated_at
        }


@dataclass
class Prediction:
    """A flagged claim awaiting crowd verification."""
    prediction_id: str
    content: str
    author_wallet: str
    parent: ParentRef = None
    deadline: Optional[str] = None

    status: PredictionStatus = PredictionStatus.PENDING
    correct_votes: int = 0
    incorrect_votes: int = 0
    total_verifiers: int = 0

    created_at: str = field(default_factory=utc_now)
    updated_at: Optional[str] = None
    finalized_at: Optional[str] = None

    @property
    def is_pending(self) -> bool:
        return self.status == PredictionStatus.PENDING

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "Prediction":
        return cls(
            prediction_id=row["prediction_id"],
            content=row["content"],
            author_wallet=row["author_wallet"],
            parent=parent_from_columns(row["parent_kind"], row["parent_id"]),
            deadline=row["deadline"],
            status=PredictionStatus(row["status"]),
            correct_votes=row["correct_votes"],
            incorrect_votes=row["incorrect_votes"],
            total_verifiers=row["total_verifiers"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            finalized_at=row["finalized_at"]
        )

    def to_dict(self) -> Dict:
        return {
            "prediction_id": self.prediction_id,
            "content": self.content,
            "author_wallet": self.author_wallet,
            "post_id": self.parent.id if isinstance(self.parent, PostRef) else None,
            "comment_id": self.parent.id if isinstance(self.parent, CommentRef) else None,
            "deadline": self.deadline,
            "status": self.status.value,
            "correct_votes": self.correct_votes,
            "incorrect_votes": self.incorrect_votes,
            "total_verifiers": self.total_verifiers,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "finalized_at": self.finalized_at
        }


@dataclass
class Verification:
    """One wallet's judgment on a prediction."""
    verification_id: str
    prediction_id: str
    verifier_wallet: str
    result: VerificationResult
    verifier_trust: int        # Verifier's level when the verification was made
    created_at: str = field(default_factory=utc_now)

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "Verification":
        return cls(
            verification_id=row["verification_id"],
            prediction_id=row["prediction_id"],
            verifier_wallet=row["verifier_wallet"],
            result=VerificationResult(row["result"]),
            verifier_trust=row["verifier_trust"],
            created_at=row["created_at"]
        )

    def to_dict(self) -> Dict:
        return {
            "verification_id": self.verification_id,
            "prediction_id": self.prediction_id,
            "verifier_wallet": self.verifier_wallet,
            "result": self.result.value,
            "verifier_trust": self.verifier_trust,
            "created_at": self.created_at
        }


@dataclass
class SettlementResult:
    """What a successful finalization changed."""
    prediction_id: str
    status: PredictionStatus
    author_wallet: str
    author_points: int
    rewarded_verifiers: List[str]
    finalized_at: str

    def to_dict(self) -> Dict:
        return {
            "prediction_id": self.prediction_id,
            "status": self.status.value,
            "author_wallet": self.author_wallet,
            "author_points": self.author_points,
            "rewarded_verifiers": self.rewarded_verifiers,
            "finalized_at": self.finalized_at
        }


@dataclass
class TrustStats:
    """A trust account plus activity counts."""
    account: TrustAccount
    total_predictions: int = 0
    total_verifications: int = 0
    correct_predictions: int = 0
    incorrect_predictions: int = 0

    @property
    def accuracy(self) -> Optional[int]:
        """Percentage of settled predictions judged correct."""
        settled = self.correct_predictions + self.incorrect_predictions
        if settled == 0:
            return None
        # Half rounds up
        return math.floor(self.correct_predictions / settled * 100 + 0.5)

    def to_dict(self) -> Dict:
        data = self.account.to_dict()
        data.update({
            "total_predictions": self.total_predictions,
            "total_verifications": self.total_verifications,
            "accuracy": self.accuracy
        })
        return data
