from datetime import timedelta

from src.config import config
from src.models.base import create_session_factory
from src.services.coordinator import ContinuityCoordinator
from src.services.ledger import LedgerClient, LedgerStatusReader, LedgerTransactionSubmitter
from src.services.store import MemorySubscriptionStore, SqlSubscriptionStore, SubscriptionStore
from src.utils.logger import setup_logger

logger = setup_logger(__name__)


def build_store() -> SubscriptionStore:
    if config.DATABASE_URL:
        logger.info("Using the SQL subscription store")
        return SqlSubscriptionStore(create_session_factory(config.DATABASE_URL))
    logger.info("DATABASE_URL not set, using the in-memory subscription store")
    return MemorySubscriptionStore()


def build_coordinator(subscription_store: SubscriptionStore) -> ContinuityCoordinator:
    client = LedgerClient(
        rest_api_url=config.LEDGER_REST_URL,
        json_rpc_url=config.LEDGER_RPC_URL,
        timeout_seconds=config.LEDGER_TIMEOUT_SECONDS,
        history_limit=config.LEDGER_HISTORY_LIMIT,
    )
    return ContinuityCoordinator(
        store=subscription_store,
        status_reader=LedgerStatusReader(client),
        submitter=LedgerTransactionSubmitter(client),
        period=timedelta(days=config.SUBSCRIPTION_PERIOD_DAYS),
    )


store = build_store()
coordinator = build_coordinator(store)


def get_store() -> SubscriptionStore:
    return store


def get_coordinator() -> ContinuityCoordinator:
    return coordinator
