"""
Forum Trust - prediction verification and reputation

Authors flag posts or comments as predictions, other wallets verify them,
and once enough verifications are in the majority outcome settles the
prediction and updates everyone's trust score.

Backed by SQLite.
"""

from trust.models import (
    TrustConfig,
    TrustAccount,
    TrustStats,
    Prediction,
    PredictionStatus,
    Verification,
    VerificationResult,
    Outcome,
    SettlementResult,
    PostRef,
    CommentRef,
    level_from_points,
    get_trust_level_info,
    get_trust_levels
)

from trust.errors import (
    TrustError,
    NotFoundError,
    ConflictError,
    ValidationError,
    StorageError,
    PredictionNotFound,
    SelfVerificationForbidden,
    PredictionAlreadySettled,
    DuplicateVerification
)

from trust.ledger import TrustLedger
from trust.predictions import PredictionStore
from trust.verifications import VerificationCollector
from trust.settlement import SettlementEngine, decide_outcome
from trust.manager import TrustManager
from trust.migration import (
    SBTMigrationService,
    MigrationConfig,
    MigrationStatus,
    MigrationResult
)

__all__ = [
    # Models
    "TrustConfig",
    "TrustAccount",
    "TrustStats",
    "Prediction",
    "PredictionStatus",
    "Verification",
    "VerificationResult",
    "Outcome",
    "SettlementResult",
    "PostRef",
    "CommentRef",

    # Levels
    "level_from_points",
    "get_trust_level_info",
    "get_trust_levels",

    # Errors
    "TrustError",
    "NotFoundError",
    "ConflictError",
    "ValidationError",
    "StorageError",
    "PredictionNotFound",
    "SelfVerificationForbidden",
    "PredictionAlreadySettled",
    "DuplicateVerification",

    # Components
    "TrustLedger",
    "PredictionStore",
    "VerificationCollector",
    "SettlementEngine",
    "decide_outcome",
    "TrustManager",

    # Migration
    "SBTMigrationService",
    "MigrationConfig",
    "MigrationStatus",
    "MigrationResult"
]
