import threading
from abc import ABC, abstractmethod
from typing import Callable, TypeVar

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from src.interfaces.community import Community
from src.interfaces.errors import NotSubscribedError, WalletMismatchError
from src.interfaces.ledger import SubscriptionTx
from src.interfaces.subscription import Subscription
from src.models.community import Community as CommunityDB
from src.models.pre_signed_transaction import PreSignedTransaction
from src.models.subscription import Subscription as SubscriptionDB
from src.utils.logger import setup_logger

logger = setup_logger(__name__)

T = TypeVar("T")


class SubscriptionStore(ABC):
    """
    Storage of communities and of the users subscriptions to them.

    Subscriptions are keyed by (user address, community name). Returned objects are copies,
    every mutation goes through the methods below.
    """

    @abstractmethod
    def declare_community(self, community: Community) -> None:
        """Insert or replace a community, last write wins."""

    @abstractmethod
    def get_community(self, community_name: str) -> Community | None: ...

    @abstractmethod
    def add_subscription(self, address: str, subscription: Subscription) -> None:
        """
        Create the subscription if the user doesn't have one for this community yet.

        Raises:
            WalletMismatchError: If a subscription exists with another subscription wallet
        """

    @abstractmethod
    def add_subscription_txs(self, address: str, community_name: str, txs: list[SubscriptionTx]) -> None:
        """
        Append pre-signed transactions to an existing subscription.

        Raises:
            NotSubscribedError: If the user has no subscription for this community
        """

    @abstractmethod
    def remove_subscription_tx(self, address: str, community_name: str, tx: SubscriptionTx) -> bool:
        """
        Remove a pre-signed transaction once it has been sent to the ledger.

        Returns:
            False if the transaction was already removed
        """

    @abstractmethod
    def get_user_subscriptions(self, address: str) -> list[Subscription]: ...

    @abstractmethod
    def get_all_subscriptions(self) -> list[tuple[str, Subscription]]: ...

    def get_subscription(self, address: str, community_name: str) -> Subscription | None:
        return next(
            (sub for sub in self.get_user_subscriptions(address) if sub.service_name == community_name), None
        )


class MemorySubscriptionStore(SubscriptionStore):
    """Thread-safe in-memory store, the communities and the subscriptions maps have their own lock."""

    def __init__(self):
        self.__communities: dict[str, Community] = {}
        self.__subscriptions: dict[str, list[Subscription]] = {}
        self.__communities_lock = threading.Lock()
        self.__subscriptions_lock = threading.Lock()

    def __modify_subscription(self, address: str, community_name: str, mutate: Callable[[Subscription], T]) -> T:
        """Find the stored subscription and apply `mutate` to it in place, under the subscriptions lock."""
        with self.__subscriptions_lock:
            subscription = next(
                (sub for sub in self.__subscriptions.get(address, []) if sub.service_name == community_name), None
            )
            if subscription is None:
                raise NotSubscribedError()
            return mutate(subscription)

    def declare_community(self, community: Community) -> None:
        with self.__communities_lock:
            self.__communities[community.name] = community.model_copy(deep=True)

    def get_community(self, community_name: str) -> Community | None:
        with self.__communities_lock:
            community = self.__communities.get(community_name)
            return community.model_copy(deep=True) if community is not None else None

    def add_subscription(self, address: str, subscription: Subscription) -> None:
        with self.__subscriptions_lock:
            user_subscriptions = self.__subscriptions.setdefault(address, [])
            existing = next((sub for sub in user_subscriptions if sub.service_name == subscription.service_name), None)

            if existing is None:
                user_subscriptions.append(subscription.model_copy(deep=True))
            # Subscription wallets are derived deterministically, they are not expected to change
            elif existing.subscription_wallet != subscription.subscription_wallet:
                raise WalletMismatchError()

    def add_subscription_txs(self, address: str, community_name: str, txs: list[SubscriptionTx]) -> None:
        copies = [tx.model_copy(deep=True) for tx in txs]
        self.__modify_subscription(address, community_name, lambda sub: sub.pre_signed_txs.extend(copies))

    def remove_subscription_tx(self, address: str, community_name: str, tx: SubscriptionTx) -> bool:
        batch_key = tx.batch_key()

        def remove(subscription: Subscription) -> bool:
            for index, existing in enumerate(subscription.pre_signed_txs):
                if existing.batch_key() == batch_key:
                    del subscription.pre_signed_txs[index]
                    return True
            return False

        return self.__modify_subscription(address, community_name, remove)

    def get_user_subscriptions(self, address: str) -> list[Subscription]:
        with self.__subscriptions_lock:
            return [sub.model_copy(deep=True) for sub in self.__subscriptions.get(address, [])]

    def get_all_subscriptions(self) -> list[tuple[str, Subscription]]:
        with self.__subscriptions_lock:
            return [
                (address, sub.model_copy(deep=True))
                for address, subscriptions in self.__subscriptions.items()
                for sub in subscriptions
            ]


class SqlSubscriptionStore(SubscriptionStore):
    """Durable store backed by SQLAlchemy, each call runs in its own session."""

    def __init__(self, session_factory: sessionmaker[Session]):
        self.session_factory = session_factory

    @staticmethod
    def __to_interface(subscription: SubscriptionDB) -> Subscription:
        return Subscription(
            service_name=subscription.service_name,
            subscription_wallet=subscription.subscription_wallet,
            pre_signed_txs=[SubscriptionTx.model_validate(tx.payload) for tx in subscription.pre_signed_txs],
        )

    @staticmethod
    def __find_subscription(db: Session, address: str, community_name: str) -> SubscriptionDB | None:
        return (
            db.query(SubscriptionDB)
            .filter(SubscriptionDB.user_address == address, SubscriptionDB.service_name == community_name)
            .with_for_update()
            .first()
        )

    def declare_community(self, community: Community) -> None:
        with self.session_factory() as db:
            db.merge(CommunityDB(name=community.name, community_metadata=community.metadata))
            db.commit()

    def get_community(self, community_name: str) -> Community | None:
        with self.session_factory() as db:
            community = db.get(CommunityDB, community_name)
            if community is None:
                return None
            return Community(name=community.name, metadata=community.community_metadata)

    @staticmethod
    def __pre_signed_rows(txs: list[SubscriptionTx], first_position: int) -> list[PreSignedTransaction]:
        return [
            PreSignedTransaction(
                batch_key=tx.batch_key(),
                position=first_position + offset,
                valid_from=tx.transfer_to_sub.valid_from,
                valid_until=tx.transfer_to_sub.valid_until,
                payload=tx.model_dump(mode="json", by_alias=True),
            )
            for offset, tx in enumerate(txs)
        ]

    def add_subscription(self, address: str, subscription: Subscription) -> None:
        with self.session_factory() as db:
            existing = self.__find_subscription(db, address, subscription.service_name)
            if existing is None:
                # Pre-signed transactions are only taken with a new record
                db.add(
                    SubscriptionDB(
                        user_address=address,
                        service_name=subscription.service_name,
                        subscription_wallet=subscription.subscription_wallet,
                        pre_signed_txs=self.__pre_signed_rows(subscription.pre_signed_txs, 0),
                    )
                )
                try:
                    db.commit()
                    return
                except IntegrityError:
                    # Created concurrently by another request, compare with the winner
                    db.rollback()
                    logger.debug(f"Subscription of {address} to {subscription.service_name} created concurrently")
                    existing = self.__find_subscription(db, address, subscription.service_name)
                    if existing is None:
                        raise

            if existing.subscription_wallet != subscription.subscription_wallet:
                raise WalletMismatchError()

    def add_subscription_txs(self, address: str, community_name: str, txs: list[SubscriptionTx]) -> None:
        with self.session_factory() as db:
            subscription = self.__find_subscription(db, address, community_name)
            if subscription is None:
                raise NotSubscribedError()

            last_position = (
                db.query(func.max(PreSignedTransaction.position))
                .filter(PreSignedTransaction.subscription_id == subscription.id)
                .scalar()
            )
            next_position = 0 if last_position is None else last_position + 1

            subscription.pre_signed_txs.extend(self.__pre_signed_rows(txs, next_position))
            db.commit()

    def remove_subscription_tx(self, address: str, community_name: str, tx: SubscriptionTx) -> bool:
        with self.session_factory() as db:
            subscription = self.__find_subscription(db, address, community_name)
            if subscription is None:
                raise NotSubscribedError()

            removed = (
                db.query(PreSignedTransaction)
                .filter(
                    PreSignedTransaction.subscription_id == subscription.id,
                    PreSignedTransaction.batch_key == tx.batch_key(),
                )
                .delete(synchronize_session=False)
            )
            db.commit()
            return removed > 0

    def get_user_subscriptions(self, address: str) -> list[Subscription]:
        with self.session_factory() as db:
            subscriptions = (
                db.query(SubscriptionDB)
                .filter(SubscriptionDB.user_address == address)
                .order_by(SubscriptionDB.created_at.asc())
                .all()
            )
            return [self.__to_interface(sub) for sub in subscriptions]

    def get_subscription(self, address: str, community_name: str) -> Subscription | None:
        with self.session_factory() as db:
            subscription = (
                db.query(SubscriptionDB)
                .filter(SubscriptionDB.user_address == address, SubscriptionDB.service_name == community_name)
                .first()
            )
            return self.__to_interface(subscription) if subscription is not None else None

    def get_all_subscriptions(self) -> list[tuple[str, Subscription]]:
        with self.session_factory() as db:
            return [(sub.user_address, self.__to_interface(sub)) for sub in db.query(SubscriptionDB).all()]
