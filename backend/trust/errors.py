"""
Trust Errors - Forum Trust

Failures raised by the trust core. Every error carries a ``kind`` so the
API layer can tell caller mistakes (not_found, conflict, validation) from
backing-store failures (storage).
"""


class TrustError(Exception):
    """Base class for trust core errors."""
    kind = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(TrustError):
    kind = "not_found"


class ConflictError(TrustError):
    kind = "conflict"


class ValidationError(TrustError):
    kind = "validation"


class StorageError(TrustError):
    """The backing store failed; the surrounding transaction was rolled back."""
    kind = "storage"


class PredictionNotFound(NotFoundError):
    def __init__(self, prediction_id: str):
        super().__init__(f"Prediction {prediction_id} not found")
        self.prediction_id = prediction_id


class SelfVerificationForbidden(ConflictError):
    def __init__(self, prediction_id: str, wallet: str):
        super().__init__(f"Wallet {wallet} cannot verify its own prediction {prediction_id}")
        self.prediction_id = prediction_id
        self.wallet = wallet


class PredictionAlreadySettled(ConflictError):
    def __init__(self, prediction_id: str, status: str):
        super().__init__(f"Prediction {prediction_id} is already settled ({status})")
        self.prediction_id = prediction_id
        self.status = status


class DuplicateVerification(ConflictError):
    def __init__(self, prediction_id: str, wallet: str):
        super().__init__(f"Wallet {wallet} has already verified prediction {prediction_id}")
        self.prediction_id = prediction_id
        self.wallet = wallet
