"""Voucher catalog and redemption mirror."""

from __future__ import annotations

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from rindo.db.models import Voucher, VoucherRedeem
from rindo.errors import ChainError, RedemptionLoggingFailedError, RindoValidationError
from rindo.vouchers.service import VoucherService

ALICE = "0x1111111111111111111111111111111111111111"
BOB = "0x2222222222222222222222222222222222222222"
TX = "0x" + "aa" * 32


@pytest.fixture
def seed_vouchers(db_session):
    async def _seed() -> list[Voucher]:
        vouchers = [
            Voucher(nft_token_id=2, name="Coffee", partner_name="Bean Co", discount="20%", cost_in_rindo=50),
            Voucher(nft_token_id=1, name="Books", partner_name="Readers", discount="10%", cost_in_rindo=30),
            Voucher(
                nft_token_id=3, name="Retired", partner_name="Gone", discount="5%", cost_in_rindo=10, is_active=False
            ),
        ]
        db_session.add_all(vouchers)
        await db_session.commit()
        return vouchers

    return _seed


class TestRecordRedemption:
    @pytest.mark.asyncio
    async def test_records_confirmed_redemption(self, db_session, make_user):
        user = await make_user()
        record = await VoucherService(db_session).record_redemption(ALICE, 1, 2, TX)

        assert record.user_id == user.id
        assert record.voucher_id == 1
        assert record.nft_token_id == 2
        assert record.tx_hash == TX
        assert record.status == "confirmed"

    @pytest.mark.asyncio
    async def test_same_hash_is_idempotent(self, db_session, make_user):
        await make_user()
        service = VoucherService(db_session)
        first = await service.record_redemption(ALICE, 1, 2, TX)
        second = await service.record_redemption(ALICE, 1, 2, TX)

        assert second.id == first.id
        rows = await db_session.execute(select(VoucherRedeem))
        assert len(rows.scalars().all()) == 1

    @pytest.mark.asyncio
    async def test_hash_owned_by_another_account(self, db_session, make_user):
        await make_user(ALICE)
        await make_user(BOB)
        service = VoucherService(db_session)
        await service.record_redemption(ALICE, 1, 2, TX)

        with pytest.raises(RindoValidationError) as exc_info:
            await service.record_redemption(BOB, 1, 2, TX)
        assert exc_info.value.field == "tx_hash"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(("voucher_id", "nft_token_id"), [(9, 2), (1, 9)])
    async def test_same_hash_different_voucher(self, db_session, make_user, voucher_id, nft_token_id):
        """A hash already stored for one redemption cannot be reused for another."""
        await make_user()
        service = VoucherService(db_session)
        await service.record_redemption(ALICE, 1, 2, TX)

        with pytest.raises(RindoValidationError) as exc_info:
            await service.record_redemption(ALICE, voucher_id, nft_token_id, TX)
        assert exc_info.value.field == "tx_hash"

        rows = await db_session.execute(select(VoucherRedeem))
        stored = rows.scalars().all()
        assert [(r.voucher_id, r.nft_token_id) for r in stored] == [(1, 2)]

    @pytest.mark.asyncio
    async def test_missing_hash(self, db_session, make_user):
        await make_user()
        with pytest.raises(RindoValidationError):
            await VoucherService(db_session).record_redemption(ALICE, 1, 2, "  ")

    @pytest.mark.asyncio
    async def test_store_failure_reports_minted_nft(self, db_session, make_user, monkeypatch):
        await make_user()

        async def failing_commit():
            raise OperationalError("INSERT INTO voucher_redeems", {}, Exception("disk full"))

        service = VoucherService(db_session)
        monkeypatch.setattr(db_session, "commit", failing_commit)
        with pytest.raises(RedemptionLoggingFailedError) as exc_info:
            await service.record_redemption(ALICE, 1, 2, TX)

        assert exc_info.value.tx_hash == TX
        assert exc_info.value.to_dict()["nft_minted"] is True


class TestCatalog:
    @pytest.mark.asyncio
    async def test_lists_active_by_price(self, db_session, seed_vouchers):
        await seed_vouchers()
        vouchers = await VoucherService(db_session).list_vouchers()
        assert [v.name for v in vouchers] == ["Books", "Coffee"]

    @pytest.mark.asyncio
    async def test_owned_vouchers_from_chain(self, db_session, make_user, seed_vouchers, fake_gateway):
        await make_user()
        await seed_vouchers()
        fake_gateway.voucher_balances[(ALICE, 2)] = 3

        owned = await VoucherService(db_session).owned_vouchers(ALICE, fake_gateway)
        assert [(o["nft_token_id"], o["quantity"], o["name"]) for o in owned] == [(2, 3, "Coffee")]

    @pytest.mark.asyncio
    async def test_failed_balance_query_is_skipped(self, db_session, make_user, seed_vouchers, fake_gateway):
        await make_user()
        await seed_vouchers()
        fake_gateway.voucher_balances[(ALICE, 1)] = ChainError("rpc timeout")
        fake_gateway.voucher_balances[(ALICE, 2)] = 1

        owned = await VoucherService(db_session).owned_vouchers(ALICE, fake_gateway)
        assert [o["nft_token_id"] for o in owned] == [2]
