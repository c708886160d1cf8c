"""
SBT Migration - Forum Trust

Moves database trust scores onto a soulbound token (SBT) later on.
There is no chain integration yet: without an enabled contract handle a
migration request is only acknowledged as pending.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol

from trust.manager import TrustManager

logger = logging.getLogger(__name__)


class MigrationStatus(Enum):
    NONE = "none"
    PENDING = "pending"
    MIGRATED = "migrated"


class SBTContract(Protocol):
    """Soulbound token contract the migration talks to."""

    def mint_sbt(self, wallet: str) -> Dict[str, Any]:
        """Returns {"token_id": int, "tx_hash": str}."""
        ...

    def update_trust(self, wallet: str, points: int, correct: int, incorrect: int, level: int) -> Dict[str, Any]:
        """Returns {"tx_hash": str}."""
        ...

    def get_trust_data(self, wallet: str) -> Optional[Dict[str, Any]]:
        ...


@dataclass
class MigrationConfig:
    """Configuration for SBT migration."""
    enabled: bool = False
    contract: Optional[SBTContract] = None


@dataclass
class MigrationResult:
    success: bool
    status: MigrationStatus
    tx_hash: Optional[str] = None
    token_id: Optional[int] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict:
        return {
            "success": self.success,
            "status": self.status.value,
            "tx_hash": self.tx_hash,
            "token_id": self.token_id,
            "error": self.error
        }


@dataclass
class BatchMigrationResult:
    total: int = 0
    migrated: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            "total": self.total,
            "migrated": self.migrated,
            "failed": self.failed,
            "errors": self.errors
        }


class SBTMigrationService:
    """
    Reports migration eligibility and handles migration requests.

    Built explicitly with the trust manager and its config; callers pass
    the instance around instead of importing a shared one.
    """

    def __init__(self, manager: TrustManager, config: Optional[MigrationConfig] = None):
        self.manager = manager
        self.config = config or MigrationConfig()
        logger.info(f"SBT migration service initialized (enabled={self.blockchain_enabled})")

    @property
    def blockchain_enabled(self) -> bool:
        return self.config.enabled and self.config.contract is not None

    def get_migration_status(self, wallet: str) -> Dict[str, Any]:
        """Eligibility and trust data for a wallet."""
        stats = self.manager.get_trust_stats(wallet)
        eligible = self.manager.is_migration_eligible(stats.account)

        # TODO: report MIGRATED once migrations are persisted or read back via get_trust_data
        return {
            "status": MigrationStatus.NONE.value,
            "can_migrate": eligible,
            "db_data": stats.to_dict(),
            "blockchain_data": None
        }

    def migrate(self, wallet: str) -> MigrationResult:
        """Mint an SBT carrying the wallet's trust data."""
        stats = self.manager.get_trust_stats(wallet)
        account = stats.account

        if not self.manager.is_migration_eligible(account):
            return MigrationResult(
                success=False,
                status=MigrationStatus.NONE,
                error=(
                    f"Not eligible: trust level {self.manager.config.migration_min_level}+ "
                    "and at least one settled prediction required"
                )
            )

        if not self.blockchain_enabled:
            logger.info(f"Migration requested by {wallet}; chain migration not available yet")
            return MigrationResult(
                success=False,
                status=MigrationStatus.PENDING,
                error="Blockchain migration is not available yet. Your request has been recorded."
            )

        contract = self.config.contract
        try:
            minted = contract.mint_sbt(wallet)
            contract.update_trust(
                wallet,
                account.total_points,
                account.correct_count,
                account.incorrect_count,
                account.trust_level
            )
        except Exception as e:
            logger.error(f"SBT migration failed for {wallet}: {e}")
            return MigrationResult(success=False, status=MigrationStatus.NONE, error="Migration failed")

        logger.info(f"Migrated {wallet} to SBT token {minted['token_id']}")
        return MigrationResult(
            success=True,
            status=MigrationStatus.MIGRATED,
            tx_hash=minted["tx_hash"],
            token_id=minted["token_id"]
        )

    def sync_score(self, wallet: str) -> MigrationResult:
        """Push the current database score to an already minted SBT."""
        if not self.blockchain_enabled:
            return MigrationResult(success=False, status=MigrationStatus.NONE, error="Blockchain is not enabled")

        account = self.manager.get_or_create_trust(wallet)
        try:
            receipt = self.config.contract.update_trust(
                wallet,
                account.total_points,
                account.correct_count,
                account.incorrect_count,
                account.trust_level
            )
        except Exception as e:
            logger.error(f"SBT score sync failed for {wallet}: {e}")
            return MigrationResult(success=False, status=MigrationStatus.MIGRATED, error="Sync failed")

        return MigrationResult(success=True, status=MigrationStatus.MIGRATED, tx_hash=receipt["tx_hash"])

    def batch_migrate(self) -> BatchMigrationResult:
        """Migrate every wallet at the minimum level or above (admin)."""
        result = BatchMigrationResult()

        if not self.blockchain_enabled:
            result.errors.append("Blockchain is not enabled")
            return result

        accounts = self.manager.ledger.list_accounts(self.manager.config.migration_min_level)
        result.total = len(accounts)

        for account in accounts:
            outcome = self.migrate(account.wallet)
            if outcome.success:
                result.migrated += 1
            else:
                result.failed += 1
                result.errors.append(f"{account.wallet}: {outcome.error}")

        logger.info(f"Batch migration: {result.migrated}/{result.total} migrated, {result.failed} failed")
        return result
