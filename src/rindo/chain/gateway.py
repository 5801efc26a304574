"""
Chain gateway: a stateless proxy to the RINDO token and voucher NFT contracts.

Minting goes through ``mintFromEXP`` on the token contract, signed by the
minter wallet, and blocks until the receipt arrives. A confirmation timeout is
never reported as a failed mint: the receipt is re-queried, and if it is still
unknown the caller gets ``MintConfirmationPendingError`` carrying the hash.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

import structlog
from web3 import AsyncWeb3, Web3
from web3.exceptions import ContractLogicError, TimeExhausted, TransactionNotFound

from rindo.config import Settings
from rindo.errors import ChainError, ChainGatewayUnavailableError, MintConfirmationPendingError

logger = structlog.get_logger()

TOKEN_ABI: list[dict[str, Any]] = [
    {
        "type": "function",
        "name": "mintFromEXP",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "user", "type": "address"},
            {"name": "expAmount", "type": "uint256"},
        ],
        "outputs": [],
    },
    {
        "type": "function",
        "name": "balanceOf",
        "stateMutability": "view",
        "inputs": [{"name": "account", "type": "address"}],
        "outputs": [{"name": "", "type": "uint256"}],
    },
]

VOUCHER_ABI: list[dict[str, Any]] = [
    {
        "type": "function",
        "name": "balanceOf",
        "stateMutability": "view",
        "inputs": [
            {"name": "account", "type": "address"},
            {"name": "id", "type": "uint256"},
        ],
        "outputs": [{"name": "", "type": "uint256"}],
    },
]


@dataclass(frozen=True)
class MintReceipt:
    tx_hash: str
    block_number: int | None = None
    token_amount: int = 0


def to_token_units(exp_amount: int, decimals: int) -> int:
    """1 EXP = 1 token, scaled to the token's fixed-point precision."""
    return exp_amount * 10**decimals


class ChainGateway(ABC):
    """Operations the ledger needs from the chain."""

    @abstractmethod
    async def mint_tokens(self, recipient: str, exp_amount: int) -> MintReceipt:
        """Mint ``exp_amount`` tokens to ``recipient`` and wait for confirmation.

        Raises:
            ChainError: Submission failed or the transaction reverted. Nothing was minted.
            MintConfirmationPendingError: Submitted, but confirmation is still unknown.
        """

    @abstractmethod
    async def voucher_balance(self, owner: str, nft_token_id: int) -> int:
        """Number of voucher NFTs of ``nft_token_id`` held by ``owner``."""

    @abstractmethod
    def explorer_url(self, tx_hash: str) -> str:
        """Block explorer link for a transaction."""

    async def close(self) -> None:  # noqa: B027
        """Release network resources."""


class Web3ChainGateway(ChainGateway):
    """web3.py implementation against an EVM JSON-RPC endpoint."""

    def __init__(self, settings: Settings, w3: AsyncWeb3 | None = None) -> None:
        self.settings = settings
        self.w3 = w3 or AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(settings.chain_rpc_url))
        self.account = self.w3.eth.account.from_key(settings.minter_private_key)
        self.token = self.w3.eth.contract(
            address=Web3.to_checksum_address(settings.token_contract_address),
            abi=TOKEN_ABI,
        )
        self.voucher = None
        if settings.voucher_contract_address:
            self.voucher = self.w3.eth.contract(
                address=Web3.to_checksum_address(settings.voucher_contract_address),
                abi=VOUCHER_ABI,
            )
        # Nonce allocation and submission for the minter wallet must not interleave.
        self._submit_lock = asyncio.Lock()

    def explorer_url(self, tx_hash: str) -> str:
        return f"{self.settings.explorer_base_url.rstrip('/')}/tx/{tx_hash}"

    async def mint_tokens(self, recipient: str, exp_amount: int) -> MintReceipt:
        token_amount = to_token_units(exp_amount, self.settings.token_decimals)
        tx_hash = await self._submit_mint(recipient, token_amount)
        logger.info("mint_submitted", tx_hash=tx_hash, recipient=recipient, exp_amount=exp_amount)

        receipt = await self._wait_for_receipt(tx_hash)
        if receipt.get("status") != 1:
            raise ChainError("transaction reverted", tx_hash=tx_hash)

        logger.info("mint_confirmed", tx_hash=tx_hash, block_number=receipt.get("blockNumber"))
        return MintReceipt(
            tx_hash=tx_hash,
            block_number=receipt.get("blockNumber"),
            token_amount=token_amount,
        )

    async def _submit_mint(self, recipient: str, token_amount: int) -> str:
        """Build, sign and broadcast. Any failure here means nothing reached the chain."""
        try:
            async with self._submit_lock:
                nonce = await self.w3.eth.get_transaction_count(self.account.address, "pending")
                tx = await self.token.functions.mintFromEXP(
                    Web3.to_checksum_address(recipient),
                    token_amount,
                ).build_transaction({
                    "from": self.account.address,
                    "nonce": nonce,
                    "chainId": self.settings.chain_id,
                })
                signed = self.account.sign_transaction(tx)
                raw_hash = await self.w3.eth.send_raw_transaction(signed.raw_transaction)
        except ContractLogicError as e:
            raise ChainError(getattr(e, "message", None) or str(e)) from e
        except Exception as e:
            logger.error("mint_submission_failed", recipient=recipient, error=str(e))
            raise ChainError(str(e) or type(e).__name__) from e
        return Web3.to_hex(raw_hash)

    async def _wait_for_receipt(self, tx_hash: str) -> dict[str, Any]:
        try:
            receipt = await self.w3.eth.wait_for_transaction_receipt(
                tx_hash,  # type: ignore[arg-type]
                timeout=self.settings.mint_confirmation_timeout_seconds,
            )
            return dict(receipt)
        except TimeExhausted:
            logger.warning("mint_confirmation_timeout", tx_hash=tx_hash)
        except Exception:
            logger.warning("mint_confirmation_wait_failed", tx_hash=tx_hash, exc_info=True)

        # The mint may still confirm; only a receipt decides.
        for attempt in range(1, self.settings.confirmation_recheck_attempts + 1):
            await asyncio.sleep(self.settings.confirmation_recheck_interval_seconds)
            try:
                receipt = await self.w3.eth.get_transaction_receipt(tx_hash)  # type: ignore[arg-type]
            except TransactionNotFound:
                logger.info("mint_receipt_not_found", tx_hash=tx_hash, attempt=attempt)
                continue
            except Exception:
                logger.warning("mint_receipt_query_failed", tx_hash=tx_hash, attempt=attempt, exc_info=True)
                continue
            return dict(receipt)

        raise MintConfirmationPendingError(tx_hash)

    async def voucher_balance(self, owner: str, nft_token_id: int) -> int:
        if self.voucher is None:
            raise ChainGatewayUnavailableError
        try:
            balance = await self.voucher.functions.balanceOf(
                Web3.to_checksum_address(owner),
                nft_token_id,
            ).call()
        except Exception as e:
            raise ChainError(str(e) or type(e).__name__) from e
        return int(balance)

    async def close(self) -> None:
        provider = self.w3.provider
        disconnect = getattr(provider, "disconnect", None)
        if disconnect is not None:
            await disconnect()


# ---------------------------------------------------------------------------
# Process-wide instance
# ---------------------------------------------------------------------------

_gateway: ChainGateway | None = None


def init_chain_gateway(settings: Settings) -> ChainGateway | None:
    """Create the gateway when chain settings are present; otherwise leave it unset."""
    global _gateway  # noqa: PLW0603
    if not settings.chain_configured:
        logger.warning("chain_gateway_disabled", reason="missing chain settings")
        _gateway = None
        return None
    _gateway = Web3ChainGateway(settings)
    return _gateway


async def close_chain_gateway() -> None:
    global _gateway  # noqa: PLW0603
    if _gateway is not None:
        await _gateway.close()
        _gateway = None


def get_chain_gateway_optional() -> ChainGateway | None:
    """Return the configured gateway, or None when chain settings are missing."""
    return _gateway


def get_chain_gateway() -> ChainGateway:
    """Return the configured gateway (FastAPI dependency)."""
    if _gateway is None:
        raise ChainGatewayUnavailableError
    return _gateway
