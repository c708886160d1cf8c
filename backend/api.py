"""
Forum Trust API - prediction verification and reputation

Main API endpoints:
- /predictions - Create and browse predictions
- /verify - Verify a prediction (settles it once quorum is reached)
- /trust - Wallet trust scores and stats
- /sbt/migrate - SBT migration status and requests

Every response uses the {"success": ..., "data" | "error": ...} envelope.
Run with: uvicorn api:app
"""

import os
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional, List

from dotenv import load_dotenv
from fastapi import FastAPI, Depends, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, field_validator, model_validator

# Load environment variables before trust reads its settings
load_dotenv()

from trust import (
    TrustManager, TrustConfig,
    PredictionStatus, PostRef, CommentRef,
    TrustError, get_trust_levels
)
from trust.migration import SBTMigrationService, MigrationConfig

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("Forum-Trust-API")

# ==================== CONFIG ====================

ALLOWED_ORIGINS = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    os.getenv("FRONTEND_URL", "http://localhost:3000"),
]

# Allow all origins if CORS_ALLOW_ALL is set (for development/testing)
if os.getenv("CORS_ALLOW_ALL", "").lower() == "true":
    ALLOWED_ORIGINS = ["*"]

SBT_MIGRATION_ENABLED = os.getenv("SBT_MIGRATION_ENABLED", "").lower() == "true"

# Input limits
MAX_CONTENT_LENGTH = 5000
MAX_WALLET_LENGTH = 128
MAX_TRUST_MAP_WALLETS = 100

# TrustError.kind -> HTTP status
ERROR_STATUS = {
    "not_found": 404,
    "conflict": 409,
    "validation": 422,
    "storage": 500,
}


# ==================== REQUEST MODELS ====================

class PredictionCreateRequest(BaseModel):
    content: str = Field(..., min_length=1, max_length=MAX_CONTENT_LENGTH)
    author_wallet: str = Field(..., min_length=1, max_length=MAX_WALLET_LENGTH)
    post_id: Optional[str] = None
    comment_id: Optional[str] = None
    deadline: Optional[datetime] = None

    @field_validator("content")
    @classmethod
    def validate_content(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Content cannot be empty")
        return v.strip()

    @model_validator(mode="after")
    def validate_parent(self):
        if self.post_id and self.comment_id:
            raise ValueError("A prediction belongs to a post or a comment, not both")
        return self

    def parent_ref(self):
        if self.post_id:
            return PostRef(self.post_id)
        if self.comment_id:
            return CommentRef(self.comment_id)
        return None


class VerifyRequest(BaseModel):
    prediction_id: str = Field(..., min_length=1)
    verifier_wallet: str = Field(..., min_length=1, max_length=MAX_WALLET_LENGTH)
    result: str = Field(..., pattern="^(correct|incorrect)$")


class TrustMapRequest(BaseModel):
    wallets: List[str] = Field(..., max_length=MAX_TRUST_MAP_WALLETS)


class MigrateRequest(BaseModel):
    wallet: str = Field(..., min_length=1, max_length=MAX_WALLET_LENGTH)


# ==================== DEPENDENCIES ====================

def get_manager(request: Request) -> TrustManager:
    return request.app.state.manager


def get_migration_service(request: Request) -> SBTMigrationService:
    return request.app.state.migration


def ok(data) -> dict:
    return {"success": True, "data": data}


# ==================== APP FACTORY ====================

def create_app(
    manager: Optional[TrustManager] = None,
    migration: Optional[SBTMigrationService] = None
) -> FastAPI:
    """
    Build the API. Tests pass their own manager and migration service;
    otherwise both are created from the environment at startup.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting Forum Trust API...")
        if getattr(app.state, "manager", None) is None:
            app.state.manager = TrustManager(config=TrustConfig.from_env())
        if getattr(app.state, "migration", None) is None:
            app.state.migration = SBTMigrationService(
                app.state.manager,
                MigrationConfig(enabled=SBT_MIGRATION_ENABLED)
            )
        yield
        logger.info("Shutting down Forum Trust API...")

    app = FastAPI(
        title="Forum Trust API",
        description="Prediction verification and wallet reputation",
        version="1.0.0",
        lifespan=lifespan
    )
    app.state.manager = manager
    app.state.migration = migration

    app.add_middleware(
        CORSMiddleware,
        allow_origins=ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    @app.exception_handler(TrustError)
    async def trust_error_handler(request: Request, exc: TrustError):
        status_code = ERROR_STATUS.get(exc.kind, 500)
        if status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
            message = "Internal storage error"
        else:
            message = exc.message
        return JSONResponse(
            status_code=status_code,
            content={"success": False, "error": message, "kind": exc.kind}
        )

    _register_routes(app)
    return app


def _register_routes(app: FastAPI):

    # ==================== HEALTH CHECK ====================

    @app.get("/")
    def read_root():
        return {
            "status": "online",
            "service": "Forum Trust API",
            "version": "1.0.0",
            "features": [
                "Predictions",
                "Crowd verification",
                "Majority-vote settlement",
                "Trust levels",
                "SBT migration (preview)"
            ]
        }

    @app.get("/health")
    def health_check():
        return {"status": "healthy"}

    # ==================== PREDICTIONS ====================

    @app.post("/predictions")
    def create_prediction(request: PredictionCreateRequest, manager: TrustManager = Depends(get_manager)):
        """Create a prediction, optionally attached to a post or comment."""
        prediction = manager.create_prediction(
            content=request.content,
            author_wallet=request.author_wallet,
            parent=request.parent_ref(),
            deadline=request.deadline
        )
        return ok(prediction.to_dict())

    @app.get("/predictions")
    def list_predictions(
        author: Optional[str] = None,
        wallet: Optional[str] = None,
        status: Optional[str] = Query(default=None, pattern="^(pending|correct|incorrect)$"),
        post_id: Optional[str] = None,
        comment_id: Optional[str] = None,
        limit: int = Query(default=20, ge=1, le=100),
        manager: TrustManager = Depends(get_manager)
    ):
        """
        List predictions, newest first, optionally by ``author`` and ``status``.

        With ``post_id`` or ``comment_id`` returns the predictions attached to
        that item. With ``wallet`` also reports that wallet's own verification
        of each prediction as ``user_verification``.
        """
        if post_id:
            predictions = manager.get_predictions_for_post(post_id)
        elif comment_id:
            predictions = manager.get_predictions_for_comment(comment_id)
        else:
            predictions = manager.list_predictions(
                author_wallet=author,
                status=PredictionStatus(status) if status else None,
                limit=limit
            )

        data = []
        for prediction in predictions:
            item = prediction.to_dict()
            if wallet:
                verification = manager.get_user_verification(prediction.prediction_id, wallet)
                item["user_verification"] = verification.to_dict() if verification else None
            data.append(item)
        return ok(data)

    @app.get("/predictions/{prediction_id}")
    def get_prediction(prediction_id: str, manager: TrustManager = Depends(get_manager)):
        """Get a prediction with all of its verifications."""
        prediction = manager.get_prediction(prediction_id)
        verifications = manager.get_verifications(prediction_id)
        data = prediction.to_dict()
        data["verifications"] = [v.to_dict() for v in verifications]
        return ok(data)

    # ==================== VERIFICATION ====================

    @app.post("/verify")
    def verify_prediction(request: VerifyRequest, manager: TrustManager = Depends(get_manager)):
        """
        Verify a prediction as correct or incorrect.

        Rejected with 404 if the prediction does not exist, and with 409 for
        self-verification, an already settled prediction or a second
        verification from the same wallet.
        """
        verification = manager.add_verification(
            prediction_id=request.prediction_id,
            verifier_wallet=request.verifier_wallet,
            result=request.result
        )
        prediction = manager.get_prediction(request.prediction_id)
        return ok({
            "verification": verification.to_dict(),
            "prediction": prediction.to_dict(),
            "user_verification": verification.to_dict()
        })

    # ==================== TRUST ====================

    @app.get("/trust")
    def get_trust(
        wallet: str = Query(..., min_length=1, max_length=MAX_WALLET_LENGTH),
        manager: TrustManager = Depends(get_manager)
    ):
        """Trust stats for a wallet (created on first lookup)."""
        return ok(manager.get_trust_stats(wallet).to_dict())

    @app.post("/trust")
    def get_trust_map(request: TrustMapRequest, manager: TrustManager = Depends(get_manager)):
        """Trust accounts for several wallets, keyed by wallet."""
        accounts = manager.get_trust_map(request.wallets)
        return ok({wallet: account.to_dict() for wallet, account in accounts.items()})

    @app.get("/trust/levels")
    def list_trust_levels():
        return ok(get_trust_levels())

    # ==================== SBT MIGRATION ====================

    @app.get("/sbt/migrate")
    def get_migration_status(
        wallet: str = Query(..., min_length=1, max_length=MAX_WALLET_LENGTH),
        migration: SBTMigrationService = Depends(get_migration_service)
    ):
        return ok(migration.get_migration_status(wallet))

    @app.post("/sbt/migrate")
    def migrate_to_sbt(request: MigrateRequest, migration: SBTMigrationService = Depends(get_migration_service)):
        result = migration.migrate(request.wallet)
        return {
            "success": result.success,
            "data": {
                "status": result.status.value,
                "tx_hash": result.tx_hash,
                "token_id": result.token_id,
                "error": result.error
            }
        }


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
