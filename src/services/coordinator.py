import asyncio
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Callable, Protocol

from hexbytes import HexBytes

from src.interfaces.errors import (
    ContinuityError,
    LedgerError,
    MalformedPreSignedTxError,
    NotSubscribedError,
)
from src.interfaces.ledger import SubscriptionTx, Transfer, TransferFrom
from src.interfaces.subscription import Subscription
from src.services.continuity import ContinuityDecision, SUBSCRIPTION_PERIOD, evaluate
from src.services.store import SubscriptionStore
from src.utils.logger import setup_logger

logger = setup_logger(__name__)


class StatusReader(Protocol):
    async def last_activity(self, wallet: str) -> datetime | None: ...


class BatchSubmitter(Protocol):
    async def submit_batch(
        self, transfer_to_sub: TransferFrom, burn_tx: Transfer, burn_tx_eth_signature: str
    ) -> None: ...


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ContinuityCoordinator:
    """Answers subscription status queries and sends the pre-signed renewals when they are due."""

    def __init__(
        self,
        store: SubscriptionStore,
        status_reader: StatusReader,
        submitter: BatchSubmitter,
        period: timedelta = SUBSCRIPTION_PERIOD,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.status_reader = status_reader
        self.submitter = submitter
        self.period = period
        self.clock = clock
        self.__submission_locks: dict[tuple[str, str], asyncio.Lock] = {}
        self.__lock_holders: defaultdict[tuple[str, str], int] = defaultdict(int)

    def set_subscription_info(self, user: str, community_name: str, subscription_wallet: str) -> None:
        self.store.add_subscription(
            user, Subscription(service_name=community_name, subscription_wallet=subscription_wallet)
        )
        logger.info(f"Subscription wallet of {user} for {community_name} set to {subscription_wallet}")

    def add_subscription_txs(self, user: str, community_name: str, txs: list[SubscriptionTx]) -> None:
        subscription = self.store.get_subscription(user, community_name)
        if subscription is None:
            raise NotSubscribedError()

        check_subscription_txs(subscription, txs)
        self.store.add_subscription_txs(user, community_name, txs)
        logger.info(f"Added {len(txs)} pre-signed transactions to the subscription of {user} for {community_name}")

    def subscribe(self, user: str, community_name: str, subscription_wallet: str, txs: list[SubscriptionTx]) -> None:
        self.set_subscription_info(user, community_name, subscription_wallet)
        if txs:
            self.add_subscription_txs(user, community_name, txs)

    def related_communities(self, user: str) -> list[str]:
        return [sub.service_name for sub in self.store.get_user_subscriptions(user)]

    async def is_subscribed(self, user: str, community_name: str) -> bool:
        subscribed, _period = await self.status_and_period(user, community_name)
        return subscribed

    async def status_and_period(
        self, user: str, community_name: str
    ) -> tuple[bool, tuple[datetime, datetime] | None]:
        """
        Subscription status and the current subscription period.

        Raises:
            LedgerUnreachableError, LedgerTimeoutError: The wallet activity couldn't be read
        """
        subscription = self.store.get_subscription(user, community_name)
        if subscription is None:
            return False, None

        decision, _submitted = await self.__resolve(user, subscription)
        return decision.subscribed, decision.period

    async def renew_due_subscriptions(self) -> list[str]:
        """
        Send every pre-signed renewal that is due, without waiting for a status query.

        Returns:
            Batch keys of the submitted renewals
        """
        submitted: list[str] = []
        for user, subscription in self.store.get_all_subscriptions():
            if not subscription.pre_signed_txs:
                continue
            try:
                decision, sent = await self.__resolve(user, subscription)
            except ContinuityError as e:
                logger.warning(f"Could not check the subscription of {user} to {subscription.service_name}: {e}")
                continue
            if sent and decision.candidate is not None:
                submitted.append(decision.candidate.batch_key())
        return submitted

    async def __resolve(self, user: str, subscription: Subscription) -> tuple[ContinuityDecision, bool]:
        last_activity = await self.status_reader.last_activity(subscription.subscription_wallet)
        decision = evaluate(last_activity, subscription.pre_signed_txs, self.clock(), self.period)

        submitted = False
        if decision.candidate is not None:
            submitted = await self.__submit(user, subscription.service_name, decision.candidate)
        return decision, submitted

    async def __submit(self, user: str, community_name: str, candidate: SubscriptionTx) -> bool:
        """Send the candidate unless a concurrent query already did. Failures leave it in the store."""
        key = (user, community_name)
        lock = self.__submission_locks.setdefault(key, asyncio.Lock())
        self.__lock_holders[key] += 1
        try:
            async with lock:
                return await self.__submit_locked(user, community_name, candidate)
        finally:
            # Locks only live while a submission for the pair is in flight
            self.__lock_holders[key] -= 1
            if self.__lock_holders[key] == 0:
                del self.__lock_holders[key]
                del self.__submission_locks[key]

    async def __submit_locked(self, user: str, community_name: str, candidate: SubscriptionTx) -> bool:
        batch_key = candidate.batch_key()
        current = self.store.get_subscription(user, community_name)
        if current is None or all(tx.batch_key() != batch_key for tx in current.pre_signed_txs):
            logger.debug(f"Subscription tx {batch_key} of {user} for {community_name} already sent")
            return False

        try:
            await self.submitter.submit_batch(
                candidate.transfer_to_sub, candidate.burn_tx, candidate.burn_tx_eth_signature
            )
        except LedgerError as e:
            logger.warning(f"Sending subscription tx {batch_key} of {user} for {community_name} failed: {e}")
            return False

        self.store.remove_subscription_tx(user, community_name, candidate)
        logger.info(f"Sent subscription tx {batch_key} of {user} for {community_name}")
        return True


def check_subscription_txs(subscription: Subscription, txs: list[SubscriptionTx]) -> None:
    """
    Structural checks run before storing pre-signed transactions.

    Raises:
        MalformedPreSignedTxError: On the first invalid transaction
    """
    known_keys = {tx.batch_key() for tx in subscription.pre_signed_txs}

    for tx in txs:
        if tx.valid_from() >= tx.valid_until():
            raise MalformedPreSignedTxError("Pre-signed transaction validity window is empty")
        if tx.transfer_to_sub.to != subscription.subscription_wallet:
            raise MalformedPreSignedTxError("Pre-signed transaction doesn't transfer to the subscription wallet")
        try:
            signature = HexBytes(tx.burn_tx_eth_signature)
        except ValueError:
            raise MalformedPreSignedTxError("Burn transaction signature is not a hex string")
        if len(signature) == 0:
            raise MalformedPreSignedTxError("Burn transaction signature is empty")

        batch_key = tx.batch_key()
        if batch_key in known_keys:
            raise MalformedPreSignedTxError("Pre-signed transaction was already added")
        known_keys.add(batch_key)
