"""
Pytest configuration and shared fixtures.
"""

import asyncio
import os

# Must be set before src.config is imported
os.environ["DATABASE_URL"] = ""
os.environ["RENEWAL_INTERVAL_SECONDS"] = "0"
os.environ["GENESIS_WALLET_ADDRESS"] = "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed"

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.pool import StaticPool

from src.interfaces.ledger import SubscriptionTx, Transfer, TransferFrom
from src.models import Base
from src.models.base import create_session_factory
from src.services.coordinator import ContinuityCoordinator
from src.services.store import MemorySubscriptionStore, SqlSubscriptionStore
from src.utils.address import format_address

USER = format_address("0xfb6916095ca1df60bb79ce92ce3ea74c37c5d359")
OTHER_USER = format_address("0xdbf03b407c01e7cd3cbea99509d93f8dddc8c6fb")
WALLET = format_address("0xd1220a0cf47c7b9be7a2e6ba89f429762e7b9adb")
OTHER_WALLET = format_address("0x52908400098527886e0f7030069857d2e4169ee7")
FEE_COLLECTOR = format_address("0x8617e340b3d01fa5f11f306f4090fd50e238070d")

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def make_subscription_tx(
    valid_from: datetime,
    valid_until: datetime,
    wallet: str = WALLET,
    nonce: int = 0,
    signature: str = "0x" + "ab" * 65,
) -> SubscriptionTx:
    return SubscriptionTx(
        transfer_to_sub=TransferFrom(
            account_id=7,
            from_address=USER,
            to=wallet,
            token=0,
            amount="1000000000000000000",
            fee="0",
            nonce=nonce,
            valid_from=int(valid_from.timestamp()),
            valid_until=int(valid_until.timestamp()),
        ),
        burn_tx=Transfer(
            account_id=7,
            from_address=USER,
            to=FEE_COLLECTOR,
            token=0,
            amount="10000000000000000",
            fee="0",
            nonce=nonce + 1,
        ),
        burn_tx_eth_signature=signature,
    )


class FakeStatusReader:
    def __init__(self, last_activity: datetime | None = None, error: Exception | None = None):
        self.activity = last_activity
        self.error = error
        self.calls: list[str] = []

    async def last_activity(self, wallet: str) -> datetime | None:
        self.calls.append(wallet)
        if self.error is not None:
            raise self.error
        return self.activity


class FakeSubmitter:
    def __init__(self, error: Exception | None = None, delay: float = 0):
        self.error = error
        self.delay = delay
        self.batches: list[tuple[TransferFrom, Transfer, str]] = []

    async def submit_batch(self, transfer_to_sub: TransferFrom, burn_tx: Transfer, burn_tx_eth_signature: str) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        self.batches.append((transfer_to_sub, burn_tx, burn_tx_eth_signature))


def create_sqlite_store() -> SqlSubscriptionStore:
    session_factory = create_session_factory(
        "sqlite://", poolclass=StaticPool, connect_args={"check_same_thread": False}
    )
    Base.metadata.create_all(session_factory.kw["bind"])
    return SqlSubscriptionStore(session_factory)


@pytest.fixture(params=["memory", "sql"])
def store(request):
    if request.param == "memory":
        return MemorySubscriptionStore()
    return create_sqlite_store()


@pytest.fixture
def status_reader():
    return FakeStatusReader()


@pytest.fixture
def submitter():
    return FakeSubmitter()


@pytest.fixture
def coordinator(status_reader, submitter):
    return ContinuityCoordinator(
        store=MemorySubscriptionStore(),
        status_reader=status_reader,
        submitter=submitter,
        clock=lambda: NOW,
    )
