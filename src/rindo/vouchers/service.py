"""Voucher catalog and redemption reconciler.

Redemption (allowance approval, then NFT mint) runs client-side against the
chain. This service only mirrors the confirmed mint for display, so a write
failure here is reported as a logging failure and never as a failed redemption.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from rindo.accounts.service import resolve_account
from rindo.chain.gateway import ChainGateway
from rindo.db.models import Voucher, VoucherRedeem
from rindo.errors import ChainError, RedemptionLoggingFailedError, RindoValidationError

logger = logging.getLogger(__name__)


def _require_positive(field: str, value: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise RindoValidationError(field, f"{field} must be a positive integer")


class VoucherService:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    # --- Redemption mirror ---

    async def record_redemption(
        self,
        wallet_address: str,
        voucher_id: int,
        nft_token_id: int,
        tx_hash: str,
    ) -> VoucherRedeem:
        """Record a client-confirmed voucher mint. Re-sending the same tx_hash returns the first record."""
        _require_positive("voucher_id", voucher_id)
        _require_positive("nft_token_id", nft_token_id)
        tx_hash = (tx_hash or "").strip()
        if not tx_hash:
            raise RindoValidationError("tx_hash", "Transaction hash required")

        user = await resolve_account(self.db, wallet_address)

        existing = await self._get_by_tx_hash(tx_hash)
        if existing is not None:
            return self._check_matches(existing, user.id, voucher_id, nft_token_id)

        try:
            redeem = VoucherRedeem(
                user_id=user.id,
                voucher_id=voucher_id,
                nft_token_id=nft_token_id,
                tx_hash=tx_hash,
                status="confirmed",
                created_at=datetime.now(timezone.utc),
            )
            self.db.add(redeem)
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            existing = await self._get_by_tx_hash(tx_hash)
            if existing is None:
                logger.error("Redemption insert failed for tx %s", tx_hash, exc_info=True)
                raise RedemptionLoggingFailedError(tx_hash, reason=str(e.orig)) from e
            return self._check_matches(existing, user.id, voucher_id, nft_token_id)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Redemption insert failed for tx %s", tx_hash, exc_info=True)
            raise RedemptionLoggingFailedError(tx_hash, reason=type(e).__name__) from e

        logger.info(
            "Redemption logged: user=%s voucher=%s nft=%s tx=%s",
            user.id, voucher_id, nft_token_id, tx_hash,
        )
        return redeem

    async def _get_by_tx_hash(self, tx_hash: str) -> VoucherRedeem | None:
        result = await self.db.execute(select(VoucherRedeem).where(VoucherRedeem.tx_hash == tx_hash))
        return result.scalar_one_or_none()

    @staticmethod
    def _check_matches(redeem: VoucherRedeem, user_id: int, voucher_id: int, nft_token_id: int) -> VoucherRedeem:
        """A re-sent hash is idempotent only when it describes the same redemption."""
        if redeem.user_id != user_id:
            raise RindoValidationError("tx_hash", "Transaction already recorded for another account")
        if (redeem.voucher_id, redeem.nft_token_id) != (voucher_id, nft_token_id):
            raise RindoValidationError("tx_hash", "Transaction already recorded for a different voucher")
        return redeem

    # --- Catalog ---

    async def list_vouchers(self) -> list[Voucher]:
        """Active catalog entries ordered by price."""
        result = await self.db.execute(
            select(Voucher)
            .where(Voucher.is_active.is_(True))
            .order_by(Voucher.cost_in_rindo, Voucher.id)
        )
        return list(result.scalars().all())

    async def owned_vouchers(self, wallet_address: str, gateway: ChainGateway) -> list[dict]:
        """Catalog entries the wallet holds on-chain, with quantities.

        Ownership is read from the chain; entries whose balance query fails are skipped.
        """
        user = await resolve_account(self.db, wallet_address)
        owned = []
        for voucher in await self.list_vouchers():
            try:
                quantity = await gateway.voucher_balance(user.wallet_address, voucher.nft_token_id)
            except ChainError:
                logger.warning("Balance query failed for voucher token %s", voucher.nft_token_id, exc_info=True)
                continue
            if quantity > 0:
                owned.append({
                    "nft_token_id": voucher.nft_token_id,
                    "quantity": quantity,
                    "name": voucher.name,
                    "partner_name": voucher.partner_name,
                    "discount": voucher.discount,
                    "metadata_uri": voucher.metadata_uri,
                    "cost_in_rindo": voucher.cost_in_rindo,
                })
        return owned
