import asyncio
from datetime import timedelta

import pytest

from src.interfaces.community import Community
from src.interfaces.errors import (
    LedgerUnreachableError,
    MalformedPreSignedTxError,
    NotSubscribedError,
    SubmissionRejectedError,
    WalletMismatchError,
)
from src.services.continuity import SUBSCRIPTION_PERIOD
from src.services.coordinator import ContinuityCoordinator
from src.services.store import MemorySubscriptionStore
from tests.conftest import (
    NOW,
    OTHER_USER,
    OTHER_WALLET,
    USER,
    WALLET,
    FakeStatusReader,
    FakeSubmitter,
    make_subscription_tx,
)

LAPSED = NOW - timedelta(days=32)


async def test_end_to_end_without_activity(coordinator, status_reader, submitter):
    coordinator.store.declare_community(Community(name="alice-fanclub"))
    coordinator.set_subscription_info(USER, "alice-fanclub", WALLET)
    coordinator.add_subscription_txs(
        USER, "alice-fanclub", [make_subscription_tx(NOW - timedelta(hours=1), NOW + timedelta(hours=1))]
    )

    assert await coordinator.is_subscribed(USER, "alice-fanclub") is False
    assert status_reader.calls == [WALLET]
    assert submitter.batches == []


async def test_unknown_subscription_is_not_subscribed(coordinator, status_reader):
    assert await coordinator.is_subscribed(USER, "alice-fanclub") is False
    assert await coordinator.status_and_period(USER, "alice-fanclub") == (False, None)
    assert status_reader.calls == []


async def test_active_subscription_period(coordinator, status_reader, submitter):
    status_reader.activity = NOW - timedelta(days=30)
    coordinator.set_subscription_info(USER, "alice-fanclub", WALLET)

    subscribed, period = await coordinator.status_and_period(USER, "alice-fanclub")

    assert subscribed is True
    assert period == (status_reader.activity, status_reader.activity + SUBSCRIPTION_PERIOD)
    assert submitter.batches == []


async def test_lapsed_subscription_sends_renewal(coordinator, status_reader, submitter):
    status_reader.activity = LAPSED
    tx = make_subscription_tx(LAPSED + timedelta(days=31), LAPSED + timedelta(days=45))
    coordinator.subscribe(USER, "alice-fanclub", WALLET, [tx])

    assert await coordinator.is_subscribed(USER, "alice-fanclub") is True

    assert submitter.batches == [(tx.transfer_to_sub, tx.burn_tx, tx.burn_tx_eth_signature)]
    assert coordinator.store.get_user_subscriptions(USER)[0].pre_signed_txs == []


async def test_failed_submission_keeps_renewal(coordinator, status_reader, submitter):
    status_reader.activity = LAPSED
    submitter.error = SubmissionRejectedError()
    tx = make_subscription_tx(LAPSED + timedelta(days=31), LAPSED + timedelta(days=45))
    coordinator.subscribe(USER, "alice-fanclub", WALLET, [tx])

    # Quasi-subscribed status is kept even though the submission failed
    assert await coordinator.is_subscribed(USER, "alice-fanclub") is True
    assert coordinator.store.get_subscription(USER, "alice-fanclub").pre_signed_txs == [tx]

    submitter.error = None
    assert await coordinator.is_subscribed(USER, "alice-fanclub") is True
    assert len(submitter.batches) == 1
    assert coordinator.store.get_subscription(USER, "alice-fanclub").pre_signed_txs == []


async def test_lapsed_without_renewal(coordinator, status_reader, submitter):
    status_reader.activity = LAPSED
    coordinator.subscribe(
        USER, "alice-fanclub", WALLET, [make_subscription_tx(NOW + timedelta(days=1), NOW + timedelta(days=10))]
    )

    assert await coordinator.status_and_period(USER, "alice-fanclub") == (False, None)
    assert submitter.batches == []


async def test_concurrent_queries_submit_once(status_reader):
    status_reader.activity = LAPSED
    submitter = FakeSubmitter(delay=0.05)
    coordinator = ContinuityCoordinator(MemorySubscriptionStore(), status_reader, submitter, clock=lambda: NOW)
    coordinator.subscribe(
        USER, "alice-fanclub", WALLET, [make_subscription_tx(LAPSED + timedelta(days=31), LAPSED + timedelta(days=45))]
    )

    results = await asyncio.gather(*[coordinator.is_subscribed(USER, "alice-fanclub") for _ in range(5)])

    assert results == [True] * 5
    assert len(submitter.batches) == 1


async def test_submission_locks_are_released(status_reader):
    status_reader.activity = LAPSED
    coordinator = ContinuityCoordinator(
        MemorySubscriptionStore(), status_reader, FakeSubmitter(delay=0.01), clock=lambda: NOW
    )
    for community_name in ["alice-fanclub", "bob-club"]:
        coordinator.subscribe(
            USER,
            community_name,
            WALLET,
            [make_subscription_tx(LAPSED + timedelta(days=31), LAPSED + timedelta(days=45))],
        )

    await asyncio.gather(
        *[coordinator.is_subscribed(USER, name) for name in ["alice-fanclub", "bob-club", "alice-fanclub"]]
    )

    assert coordinator._ContinuityCoordinator__submission_locks == {}
    assert coordinator._ContinuityCoordinator__lock_holders == {}


async def test_ledger_failure_is_propagated(coordinator, status_reader):
    status_reader.error = LedgerUnreachableError()
    coordinator.set_subscription_info(USER, "alice-fanclub", WALLET)

    with pytest.raises(LedgerUnreachableError):
        await coordinator.is_subscribed(USER, "alice-fanclub")


def test_wallet_cannot_change(coordinator):
    coordinator.set_subscription_info(USER, "alice-fanclub", WALLET)

    with pytest.raises(WalletMismatchError):
        coordinator.subscribe(USER, "alice-fanclub", OTHER_WALLET, [])


def test_add_txs_requires_subscription(coordinator):
    with pytest.raises(NotSubscribedError):
        coordinator.add_subscription_txs(USER, "alice-fanclub", [make_subscription_tx(NOW, NOW + timedelta(days=1))])


@pytest.mark.parametrize(
    "tx",
    [
        make_subscription_tx(NOW, NOW),
        make_subscription_tx(NOW, NOW + timedelta(days=1), wallet=OTHER_WALLET),
        make_subscription_tx(NOW, NOW + timedelta(days=1), signature="0x"),
        make_subscription_tx(NOW, NOW + timedelta(days=1), signature="not a signature"),
    ],
    ids=["empty-window", "wrong-recipient", "empty-signature", "non-hex-signature"],
)
def test_malformed_txs_are_rejected(coordinator, tx):
    coordinator.set_subscription_info(USER, "alice-fanclub", WALLET)

    with pytest.raises(MalformedPreSignedTxError):
        coordinator.add_subscription_txs(USER, "alice-fanclub", [tx])

    assert coordinator.store.get_subscription(USER, "alice-fanclub").pre_signed_txs == []


def test_duplicate_txs_are_rejected(coordinator):
    tx = make_subscription_tx(NOW, NOW + timedelta(days=1))
    coordinator.subscribe(USER, "alice-fanclub", WALLET, [tx])

    with pytest.raises(MalformedPreSignedTxError):
        coordinator.add_subscription_txs(USER, "alice-fanclub", [tx])


def test_related_communities(coordinator):
    coordinator.set_subscription_info(USER, "alice-fanclub", WALLET)
    coordinator.set_subscription_info(USER, "bob-club", OTHER_WALLET)
    coordinator.set_subscription_info(OTHER_USER, "carol-guild", WALLET)

    assert sorted(coordinator.related_communities(USER)) == ["alice-fanclub", "bob-club"]
    assert coordinator.related_communities("0x" + "0" * 40) == []


async def test_renew_due_subscriptions():
    due = make_subscription_tx(LAPSED + timedelta(days=31), LAPSED + timedelta(days=45))
    submitter = FakeSubmitter()
    coordinator = ContinuityCoordinator(
        MemorySubscriptionStore(), FakeStatusReader(LAPSED), submitter, clock=lambda: NOW
    )
    coordinator.subscribe(USER, "alice-fanclub", WALLET, [due])
    coordinator.subscribe(OTHER_USER, "alice-fanclub", OTHER_WALLET, [])

    submitted = await coordinator.renew_due_subscriptions()

    assert submitted == [due.batch_key()]
    assert len(submitter.batches) == 1


async def test_renewal_sweep_continues_after_errors():
    coordinator = ContinuityCoordinator(
        MemorySubscriptionStore(),
        FakeStatusReader(error=LedgerUnreachableError()),
        FakeSubmitter(),
        clock=lambda: NOW,
    )
    coordinator.subscribe(USER, "alice-fanclub", WALLET, [make_subscription_tx(NOW, NOW + timedelta(days=1))])
    coordinator.subscribe(
        OTHER_USER,
        "alice-fanclub",
        OTHER_WALLET,
        [make_subscription_tx(NOW, NOW + timedelta(days=1), wallet=OTHER_WALLET)],
    )

    assert await coordinator.renew_due_subscriptions() == []
