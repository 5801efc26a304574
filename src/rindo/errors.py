"""Domain errors.

Each error knows the HTTP status and machine-readable code it maps to, plus any
extra fields the caller needs (available/requested balance, transaction hash).
The global handler in ``rindo.middleware.error_handler`` renders them.
"""

from __future__ import annotations

from typing import Any


class RindoError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code: int = 500
    code: str = "internal_error"

    def __init__(self, message: str, **extra: Any) -> None:  # noqa: ANN401
        super().__init__(message)
        self.message = message
        self.extra = extra

    def to_dict(self) -> dict[str, Any]:
        return {"detail": self.message, "code": self.code, **self.extra}


class RindoValidationError(RindoError):
    """Malformed input, rejected before any side effect."""

    status_code = 422
    code = "validation_error"

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message, field=field)
        self.field = field


class AccountNotFoundError(RindoError):
    status_code = 404
    code = "not_found"

    def __init__(self, wallet_address: str) -> None:
        super().__init__("User not found", wallet_address=wallet_address)
        self.wallet_address = wallet_address


class InsufficientBalanceError(RindoError):
    status_code = 400
    code = "insufficient_balance"

    def __init__(self, available: int, requested: int) -> None:
        super().__init__("Insufficient EXP", available=available, requested=requested)
        self.available = available
        self.requested = requested


class ChainError(RindoError):
    """Mint failed before confirmation. No ledger mutation happened; safe to retry."""

    status_code = 502
    code = "chain_error"

    def __init__(self, reason: str, tx_hash: str | None = None) -> None:
        extra: dict[str, Any] = {"reason": reason}
        if tx_hash is not None:
            extra["tx_hash"] = tx_hash
        super().__init__(f"Blockchain transaction failed: {reason}", **extra)
        self.reason = reason
        self.tx_hash = tx_hash


class ChainGatewayUnavailableError(RindoError):
    status_code = 503
    code = "chain_unavailable"

    def __init__(self) -> None:
        super().__init__("Chain gateway is not configured")


class PostMintReconciliationRequired(RindoError):
    """Tokens are (or may be) minted but the EXP balance was not debited.

    Must never be retried automatically: a retry would mint again.
    """

    status_code = 500
    code = "post_mint_reconciliation_required"

    def __init__(self, tx_hash: str, reason: str, message: str | None = None) -> None:
        super().__init__(
            message or "Tokens minted but failed to update EXP balance",
            tx_hash=tx_hash,
            reason=reason,
        )
        self.tx_hash = tx_hash
        self.reason = reason


class MintConfirmationPendingError(PostMintReconciliationRequired):
    """Mint was submitted but no confirmation arrived in time; it may still confirm."""

    status_code = 504
    code = "mint_confirmation_pending"

    def __init__(self, tx_hash: str) -> None:
        super().__init__(
            tx_hash,
            reason="confirmation timeout",
            message="Mint submitted but not yet confirmed; do not retry",
        )


class RedemptionLoggingFailedError(RindoError):
    """The voucher NFT is already minted on-chain; only the off-chain record failed."""

    status_code = 500
    code = "redemption_logging_failed"

    def __init__(self, tx_hash: str, reason: str) -> None:
        super().__init__(
            "Voucher NFT is minted on-chain but the redemption could not be logged",
            tx_hash=tx_hash,
            reason=reason,
            nft_minted=True,
        )
        self.tx_hash = tx_hash
        self.reason = reason


class ConversionInProgressError(RindoError):
    """Another conversion for the same account has not finished yet. Nothing was minted."""

    status_code = 409
    code = "conversion_in_progress"

    def __init__(self) -> None:
        super().__init__("A conversion for this account is already in progress")
