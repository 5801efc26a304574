"""Domain error payloads and status codes."""

from __future__ import annotations

from rindo.errors import (
    AccountNotFoundError,
    ChainError,
    InsufficientBalanceError,
    MintConfirmationPendingError,
    PostMintReconciliationRequired,
    RedemptionLoggingFailedError,
    RindoValidationError,
)


def test_validation_error_names_field():
    err = RindoValidationError("source_id", "source_id must be a positive integer")
    assert err.status_code == 422
    assert err.to_dict() == {
        "detail": "source_id must be a positive integer",
        "code": "validation_error",
        "field": "source_id",
    }


def test_not_found():
    err = AccountNotFoundError("0xabc")
    assert err.status_code == 404
    assert err.to_dict()["detail"] == "User not found"


def test_insufficient_balance_carries_amounts():
    body = InsufficientBalanceError(available=5, requested=10).to_dict()
    assert body["available"] == 5
    assert body["requested"] == 10
    assert body["code"] == "insufficient_balance"


def test_chain_error_optional_hash():
    assert "tx_hash" not in ChainError("nonce too low").to_dict()
    body = ChainError("transaction reverted", tx_hash="0xdead").to_dict()
    assert body["tx_hash"] == "0xdead"
    assert body["detail"] == "Blockchain transaction failed: transaction reverted"


def test_confirmation_pending_is_a_reconciliation_case():
    err = MintConfirmationPendingError("0xbeef")
    assert isinstance(err, PostMintReconciliationRequired)
    assert err.status_code == 504
    assert err.tx_hash == "0xbeef"
    assert err.to_dict()["code"] == "mint_confirmation_pending"


def test_redemption_logging_failure_reports_minted_nft():
    body = RedemptionLoggingFailedError("0xfeed", reason="disk full").to_dict()
    assert body["nft_minted"] is True
    assert body["tx_hash"] == "0xfeed"
