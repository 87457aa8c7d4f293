"""
Shared fixtures: in-memory database, fake chain and log builders.
"""

import itertools
from typing import Dict, Iterable, List, Optional

import pytest
from eth_abi import encode
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from fundsync.core.database import DatabaseManager
from fundsync.indexer.core.event_classifier import (
    CLAIM_EVENT_HASH,
    SLOT_CHANGED_EVENT_HASH,
    TRANSFER_TOKEN_EVENT_HASH,
    TRANSFER_VALUE_EVENT_HASH,
)
from fundsync.indexer.core.run_lock import SyncRunLock
from fundsync.indexer.core.sync_engine import EventLogSyncEngine
from fundsync.indexer.core.types import RawLog
from fundsync.models import (
    Contract,
    ContractKind,
    EventAction,
    EventLog,
    Fund,
    Package,
    Referral,
    Token,
    TokenStatus,
    User,
    Wallet,
)


SFT_ADDRESS = "0x5fbdb2315678afecb367f032d93f642f64180aa3"
VAULT_ADDRESS = "0xe7f1725e7734ce288f8367e1bb143e90bb3f0512"
ALICE = "0xAaAaAaAaAaAaAaAaAaAaAaAaAaAaAaAaAaAaAaAa"
BOB = "0xbBbBBBBbbBBBbbbBbbBbbbbBBbBbbbbBbBbbBBbB"
ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

WEI = 10 ** 18

_lock_keys = itertools.count(900000)


def address_topic(address: str) -> str:
    return "0x" + "0" * 24 + address[2:].lower()


def uint_topic(value: int) -> str:
    return "0x" + format(value, "064x")


def encode_data(types: List[str], values: list) -> str:
    return "0x" + encode(types, values).hex()


class LogFactory:
    """Builds RawLogs with ABI-encoded payloads for the watched events."""

    def __init__(self):
        self._tx = itertools.count(1)

    def raw_log(
        self,
        address: str,
        topics: Iterable[str],
        data: str = "0x",
        block_number: int = 1,
        log_index: int = 0,
    ) -> RawLog:
        tx = next(self._tx)
        return RawLog(
            address=address,
            data=data,
            topics=tuple(topics),
            block_number=block_number,
            block_hash="0x" + format(block_number, "064x"),
            transaction_hash="0x" + format(tx, "064x"),
            transaction_index=0,
            log_index=log_index,
        )

    def transfer(self, from_address, to_address, token_id, address=SFT_ADDRESS, **position) -> RawLog:
        return self.raw_log(
            address,
            [
                TRANSFER_TOKEN_EVENT_HASH,
                address_topic(from_address),
                address_topic(to_address),
                uint_topic(token_id),
            ],
            **position,
        )

    def mint(self, to_address, token_id, **kwargs) -> RawLog:
        return self.transfer(ZERO_ADDRESS, to_address, token_id, **kwargs)

    def burn(self, from_address, token_id, **kwargs) -> RawLog:
        return self.transfer(from_address, ZERO_ADDRESS, token_id, **kwargs)

    def transfer_value(self, from_token_id, to_token_id, value, address=SFT_ADDRESS, **position) -> RawLog:
        return self.raw_log(
            address,
            [TRANSFER_VALUE_EVENT_HASH, uint_topic(from_token_id), uint_topic(to_token_id)],
            data=encode_data(["uint256"], [value]),
            **position,
        )

    def slot_changed(self, token_id, old_slot, new_slot, address=SFT_ADDRESS, **position) -> RawLog:
        return self.raw_log(
            address,
            [
                SLOT_CHANGED_EVENT_HASH,
                uint_topic(token_id),
                uint_topic(old_slot),
                uint_topic(new_slot),
            ],
            **position,
        )

    def claim(self, owner, amount, address=VAULT_ADDRESS, **position) -> RawLog:
        return self.raw_log(
            address,
            [CLAIM_EVENT_HASH, address_topic(owner)],
            data=encode_data(["uint256"], [amount]),
            **position,
        )


class FakeLogFetcher:
    """In-memory chain: serves logs by address and topic from from_block onward."""

    def __init__(self):
        self.logs: List[RawLog] = []
        self.calls: List[dict] = []
        self.error: Optional[Exception] = None
        self._injected: Dict[int, List[RawLog]] = {}

    def add(self, *raw_logs: RawLog) -> None:
        self.logs.extend(raw_logs)

    def inject(self, raw_log: RawLog, call: int = 0) -> None:
        """Return raw_log from the given fetch call (0 = SFT, 1 = vault) regardless of filters."""
        self._injected.setdefault(call, []).append(raw_log)

    async def fetch_logs(self, from_block, addresses, topics) -> List[RawLog]:
        addresses = [address.lower() for address in addresses]
        topics = [topic.lower() for topic in topics]
        call = len(self.calls) % 2
        self.calls.append({"from_block": from_block, "addresses": addresses, "topics": topics})
        if self.error is not None:
            raise self.error
        matched = [
            raw_log for raw_log in self.logs
            if raw_log.block_number >= from_block
            and raw_log.address.lower() in addresses
            and raw_log.signature in topics
        ]
        matched.extend(
            raw_log for raw_log in self._injected.get(call, [])
            if raw_log.block_number >= from_block
        )
        return sorted(matched, key=lambda raw_log: raw_log.position)


@pytest.fixture
async def db_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    await DatabaseManager.create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(db_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def logs() -> LogFactory:
    return LogFactory()


@pytest.fixture
def fetcher() -> FakeLogFetcher:
    return FakeLogFetcher()


@pytest.fixture
def lock_key() -> int:
    return next(_lock_keys)


@pytest.fixture
def make_engine(session_maker, fetcher, db_engine, lock_key):
    def _make(**kwargs) -> EventLogSyncEngine:
        kwargs.setdefault("log_fetcher", fetcher)
        kwargs.setdefault("run_lock", SyncRunLock(db_engine, lock_key))
        return EventLogSyncEngine(session_maker=session_maker, **kwargs)

    return _make


@pytest.fixture
def sync_engine(make_engine) -> EventLogSyncEngine:
    return make_engine()


@pytest.fixture
async def fund(session_maker) -> Fund:
    """Fund with SFT and vault contracts and packages for slots 1 and 2."""
    async with session_maker() as db:
        async with db.begin():
            fund = Fund(
                name="Growth Fund",
                chain="ethereum",
                base_currency="USDT",
                sft=Contract(kind=ContractKind.SFT, contract_address=SFT_ADDRESS, chain="ethereum"),
                vault=Contract(kind=ContractKind.VAULT, contract_address=VAULT_ADDRESS, chain="ethereum"),
                default_packages=[
                    Package(package_id="1", name="Starter"),
                    Package(package_id="2", name="Premium"),
                ],
            )
            db.add(fund)
    return fund


async def create_user(
    session_maker,
    address: str,
    staked_value: Optional[int] = None,
    username: Optional[str] = None,
) -> User:
    """User with a wallet, plus a referral when staked_value is given."""
    async with session_maker() as db:
        async with db.begin():
            user = User(username=username or address[-8:], exp=0, points=0)
            db.add(user)
            await db.flush()
            db.add(Wallet(address=address, user_id=user.id))
            if staked_value is not None:
                db.add(Referral(user_id=user.id, staked_value=staked_value))
    return user


async def create_token(
    session_maker,
    fund: Fund,
    token_id: int,
    owner: str,
    token_value: str = "0",
    status: TokenStatus = TokenStatus.HOLDING,
) -> Token:
    async with session_maker() as db:
        async with db.begin():
            token = Token(
                fund_id=fund.id,
                contract_address=SFT_ADDRESS,
                token_id=uint_topic(token_id),
                owner=owner,
                token_value=token_value,
                status=status,
            )
            db.add(token)
    return token


async def fetch_all(session_maker, model) -> list:
    async with session_maker() as db:
        result = await db.execute(select(model).order_by(model.id))
        return list(result.scalars().all())


async def count_rows(session_maker, model) -> int:
    async with session_maker() as db:
        return await db.scalar(select(func.count()).select_from(model))


async def add_event_log(session_maker, block_number, log_index, action=EventAction.TRANSFER_TOKEN) -> EventLog:
    """Applied-log row, which moves the derived checkpoint."""
    async with session_maker() as db:
        async with db.begin():
            event_log = EventLog(
                action=action,
                block_number=block_number,
                block_hash="0x" + format(block_number, "064x"),
                transaction_index=0,
                transaction_hash="0x" + "ab" * 32,
                log_index=log_index,
                contract_address=SFT_ADDRESS,
                data="0x",
                topics=[],
            )
            db.add(event_log)
    return event_log
