"""Web3 chain gateway tests with a mocked AsyncWeb3."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from web3.exceptions import ContractLogicError, TimeExhausted, TransactionNotFound

from rindo.chain import gateway as gateway_module
from rindo.chain.gateway import Web3ChainGateway, to_token_units
from rindo.config import Settings
from rindo.errors import ChainError, ChainGatewayUnavailableError, MintConfirmationPendingError

RECIPIENT = "0x1111111111111111111111111111111111111111"
RAW_HASH = b"\x12" * 32
TX_HASH = "0x" + "12" * 32


def _settings(**overrides) -> Settings:
    values = {
        "chain_rpc_url": "http://localhost:8545",
        "token_contract_address": "0x" + "ab" * 20,
        "minter_private_key": "0x" + "11" * 32,
        "confirmation_recheck_attempts": 2,
        "confirmation_recheck_interval_seconds": 0,
        "mint_confirmation_timeout_seconds": 1,
    }
    values.update(overrides)
    return Settings(**values)


def _gateway(**overrides) -> tuple[Web3ChainGateway, MagicMock]:
    w3 = MagicMock()
    w3.eth.get_transaction_count = AsyncMock(return_value=7)
    w3.eth.send_raw_transaction = AsyncMock(return_value=RAW_HASH)
    w3.eth.wait_for_transaction_receipt = AsyncMock(return_value={"status": 1, "blockNumber": 42})
    w3.eth.get_transaction_receipt = AsyncMock(side_effect=TransactionNotFound("not found"))
    gw = Web3ChainGateway(_settings(**overrides), w3=w3)
    gw.token.functions.mintFromEXP.return_value.build_transaction = AsyncMock(return_value={"data": "0x"})
    return gw, w3


def test_token_units():
    assert to_token_units(15, 18) == 15 * 10**18
    assert to_token_units(3, 0) == 3


class TestMintTokens:
    @pytest.mark.asyncio
    async def test_confirmed_mint(self):
        gw, w3 = _gateway()
        receipt = await gw.mint_tokens(RECIPIENT, 15)

        assert receipt.tx_hash == TX_HASH
        assert receipt.block_number == 42
        assert receipt.token_amount == 15 * 10**18
        w3.eth.get_transaction_count.assert_awaited_once_with(gw.account.address, "pending")
        gw.token.functions.mintFromEXP.assert_called_once()
        args = gw.token.functions.mintFromEXP.call_args.args
        assert args[1] == 15 * 10**18

    @pytest.mark.asyncio
    async def test_submission_failure_is_chain_error(self):
        gw, w3 = _gateway()
        w3.eth.send_raw_transaction.side_effect = ConnectionError("rpc down")
        with pytest.raises(ChainError) as exc_info:
            await gw.mint_tokens(RECIPIENT, 5)
        assert exc_info.value.tx_hash is None
        assert "rpc down" in exc_info.value.reason

    @pytest.mark.asyncio
    async def test_contract_revert_on_estimate(self):
        gw, _ = _gateway()
        gw.token.functions.mintFromEXP.return_value.build_transaction.side_effect = ContractLogicError(
            "execution reverted: caller is not minter"
        )
        with pytest.raises(ChainError) as exc_info:
            await gw.mint_tokens(RECIPIENT, 5)
        assert "not minter" in exc_info.value.reason

    @pytest.mark.asyncio
    async def test_reverted_receipt(self):
        gw, w3 = _gateway()
        w3.eth.wait_for_transaction_receipt.return_value = {"status": 0, "blockNumber": 43}
        with pytest.raises(ChainError) as exc_info:
            await gw.mint_tokens(RECIPIENT, 5)
        assert exc_info.value.tx_hash == TX_HASH
        assert exc_info.value.reason == "transaction reverted"

    @pytest.mark.asyncio
    async def test_timeout_then_receipt_found(self):
        """A wait timeout is not a failure when a later receipt query finds the transaction."""
        gw, w3 = _gateway()
        w3.eth.wait_for_transaction_receipt.side_effect = TimeExhausted("timed out")
        w3.eth.get_transaction_receipt.side_effect = [
            TransactionNotFound("not yet"),
            {"status": 1, "blockNumber": 44},
        ]
        receipt = await gw.mint_tokens(RECIPIENT, 5)
        assert receipt.block_number == 44
        assert w3.eth.get_transaction_receipt.await_count == 2

    @pytest.mark.asyncio
    async def test_timeout_never_confirmed(self):
        gw, w3 = _gateway()
        w3.eth.wait_for_transaction_receipt.side_effect = TimeExhausted("timed out")
        with pytest.raises(MintConfirmationPendingError) as exc_info:
            await gw.mint_tokens(RECIPIENT, 5)
        assert exc_info.value.tx_hash == TX_HASH
        assert w3.eth.get_transaction_receipt.await_count == 2


class TestVoucherBalance:
    @pytest.mark.asyncio
    async def test_without_voucher_contract(self):
        gw, _ = _gateway()
        with pytest.raises(ChainGatewayUnavailableError):
            await gw.voucher_balance(RECIPIENT, 1)

    @pytest.mark.asyncio
    async def test_reads_erc1155_balance(self):
        gw, _ = _gateway(voucher_contract_address="0x" + "cd" * 20)
        gw.voucher.functions.balanceOf.return_value.call = AsyncMock(return_value=2)
        assert await gw.voucher_balance(RECIPIENT, 3) == 2

    @pytest.mark.asyncio
    async def test_query_failure_is_chain_error(self):
        gw, _ = _gateway(voucher_contract_address="0x" + "cd" * 20)
        gw.voucher.functions.balanceOf.return_value.call = AsyncMock(side_effect=TimeoutError("slow"))
        with pytest.raises(ChainError):
            await gw.voucher_balance(RECIPIENT, 3)


def test_explorer_url():
    gw, _ = _gateway(explorer_base_url="https://sepolia.basescan.org/")
    assert gw.explorer_url("0xabc") == "https://sepolia.basescan.org/tx/0xabc"


class TestProcessGateway:
    def test_unconfigured_chain_leaves_gateway_unset(self, monkeypatch):
        monkeypatch.setattr(gateway_module, "_gateway", None)
        assert gateway_module.init_chain_gateway(Settings(chain_rpc_url="")) is None
        with pytest.raises(ChainGatewayUnavailableError):
            gateway_module.get_chain_gateway()

    @pytest.mark.asyncio
    async def test_close_resets_gateway(self, monkeypatch):
        fake = MagicMock()
        fake.close = AsyncMock()
        monkeypatch.setattr(gateway_module, "_gateway", fake)
        assert gateway_module.get_chain_gateway() is fake
        await gateway_module.close_chain_gateway()
        fake.close.assert_awaited_once()
        assert gateway_module._gateway is None

    def test_optional_accessor(self, monkeypatch):
        monkeypatch.setattr(gateway_module, "_gateway", None)
        assert gateway_module.get_chain_gateway_optional() is None

        fake = MagicMock()
        monkeypatch.setattr(gateway_module, "_gateway", fake)
        assert gateway_module.get_chain_gateway_optional() is fake
