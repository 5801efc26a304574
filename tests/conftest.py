"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import AsyncGenerator, Awaitable, Callable
from contextlib import asynccontextmanager

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from rindo.accounts.service import sync_user
from rindo.chain.gateway import ChainGateway, MintReceipt, get_chain_gateway, to_token_units
from rindo.config import get_settings
from rindo.database import close_db, create_all, get_session, init_db
from rindo.db.models import User
from rindo.main import create_app

ALICE = "0x1111111111111111111111111111111111111111"


class FakeChainGateway(ChainGateway):
    """In-memory stand-in for the token and voucher contracts."""

    def __init__(self) -> None:
        self.minted: list[tuple[str, int, str]] = []
        self.fail_with: Exception | None = None
        self.fixed_tx_hash: str | None = None
        self.on_mint: Callable[[], Awaitable[None]] | None = None
        self.voucher_balances: dict[tuple[str, int], int | Exception] = {}
        self._counter = 0

    async def mint_tokens(self, recipient: str, exp_amount: int) -> MintReceipt:
        if self.fail_with is not None:
            raise self.fail_with
        self._counter += 1
        tx_hash = self.fixed_tx_hash or f"0x{self._counter:064x}"
        self.minted.append((recipient, exp_amount, tx_hash))
        if self.on_mint is not None:
            await self.on_mint()
        return MintReceipt(
            tx_hash=tx_hash, block_number=1000 + self._counter, token_amount=to_token_units(exp_amount, 18)
        )

    async def voucher_balance(self, owner: str, nft_token_id: int) -> int:
        value = self.voucher_balances.get((owner, nft_token_id), 0)
        if isinstance(value, Exception):
            raise value
        return value

    def explorer_url(self, tx_hash: str) -> str:
        return f"https://sepolia.basescan.org/tx/{tx_hash}"


@pytest_asyncio.fixture
async def database(tmp_path, monkeypatch) -> AsyncGenerator[None, None]:
    """Fresh SQLite database file per test, schema created from the models."""
    monkeypatch.setenv("RINDO_DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'rindo.db'}")
    monkeypatch.setenv("RINDO_LOG_FORMAT", "console")
    get_settings.cache_clear()
    await init_db(get_settings().database_url)
    await create_all()
    yield
    await close_db()
    get_settings.cache_clear()


@pytest_asyncio.fixture
async def db_session(database) -> AsyncGenerator[AsyncSession, None]:
    """Direct database session for setup and assertions."""
    gen = get_session()
    session = await gen.__anext__()
    yield session
    await gen.aclose()


@pytest.fixture
def open_session(database):
    """Open an extra, independent session (simulates another request)."""

    @asynccontextmanager
    async def _open() -> AsyncGenerator[AsyncSession, None]:
        gen = get_session()
        session = await gen.__anext__()
        try:
            yield session
        finally:
            await gen.aclose()

    return _open


@pytest.fixture
def fake_gateway() -> FakeChainGateway:
    return FakeChainGateway()


@pytest.fixture
def make_user(db_session: AsyncSession):
    """Create an account, optionally with a starting balance."""

    async def _make(wallet: str = ALICE, current_exp: int = 0, total_exp_earned: int | None = None) -> User:
        user, _ = await sync_user(db_session, wallet)
        user.current_exp = current_exp
        user.total_exp_earned = current_exp if total_exp_earned is None else total_exp_earned
        await db_session.commit()
        return user

    return _make


@pytest.fixture
def read_balance(open_session):
    """Read (current_exp, total_exp_earned) through a fresh session."""

    async def _read(wallet: str = ALICE) -> tuple[int, int]:
        async with open_session() as session:
            result = await session.execute(
                select(User.current_exp, User.total_exp_earned).where(User.wallet_address == wallet.lower())
            )
            row = result.one()
            return row.current_exp, row.total_exp_earned

    return _read


@pytest.fixture
def app(fake_gateway: FakeChainGateway) -> FastAPI:
    """Application with the chain gateway replaced by the fake."""
    application = create_app()
    application.dependency_overrides[get_chain_gateway] = lambda: fake_gateway
    return application


@pytest_asyncio.fixture
async def client(database, app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against the test application."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
