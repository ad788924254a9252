from fastapi import Depends

from src.config import config
from src.interfaces.subscription import (
    AddSubscriptionTxsRequest,
    RelatedCommunitiesRequest,
    RelatedCommunitiesResponse,
    SetSubscriptionInfoRequest,
    SubscribeRequest,
    SubscriptionCheckResponse,
    SubscriptionPeriodResponse,
    SubscriptionRequest,
)
from src.routes.subscriptions import router
from src.services.coordinator import ContinuityCoordinator
from src.services.engine import get_coordinator
from src.utils.cron import scheduler
from src.utils.logger import setup_logger

logger = setup_logger(__name__)


@router.post("/set_subscription_info", description="Set the subscription wallet of a user for a community")  # type: ignore
async def set_subscription_info(
    request: SetSubscriptionInfoRequest, coordinator: ContinuityCoordinator = Depends(get_coordinator)
) -> None:
    coordinator.set_subscription_info(request.user, request.community_name, request.subscription_wallet)


@router.post("/add_subscription_txs", description="Add pre-signed renewal transactions to a subscription")  # type: ignore
async def add_subscription_txs(
    request: AddSubscriptionTxsRequest, coordinator: ContinuityCoordinator = Depends(get_coordinator)
) -> None:
    coordinator.add_subscription_txs(request.user, request.community_name, request.txs)


@router.post("/subscribe", description="Set the subscription wallet and add pre-signed transactions at once")  # type: ignore
async def subscribe(request: SubscribeRequest, coordinator: ContinuityCoordinator = Depends(get_coordinator)) -> None:
    coordinator.subscribe(request.user, request.community_name, request.subscription_wallet, request.txs)


@router.post("/is_user_subscribed", description="Check if a user is currently subscribed to a community")  # type: ignore
async def is_user_subscribed(
    request: SubscriptionRequest, coordinator: ContinuityCoordinator = Depends(get_coordinator)
) -> SubscriptionCheckResponse:
    subscribed = await coordinator.is_subscribed(request.user, request.community_name)
    return SubscriptionCheckResponse(subscribed=subscribed)


@router.post("/subscription_period", description="Get the subscription status and its current period")  # type: ignore
async def subscription_period(
    request: SubscriptionRequest, coordinator: ContinuityCoordinator = Depends(get_coordinator)
) -> SubscriptionPeriodResponse:
    subscribed, period = await coordinator.status_and_period(request.user, request.community_name)
    if period is None:
        return SubscriptionPeriodResponse(subscribed=subscribed)
    start, end = period
    return SubscriptionPeriodResponse(subscribed=subscribed, start=start, end=end)


@router.post("/related_communities", description="List the communities a user has a subscription for")  # type: ignore
async def related_communities(
    request: RelatedCommunitiesRequest, coordinator: ContinuityCoordinator = Depends(get_coordinator)
) -> RelatedCommunitiesResponse:
    return RelatedCommunitiesResponse(communities=coordinator.related_communities(request.user))


async def renew_subscriptions() -> list[str]:
    """Scheduled job sending the due pre-signed renewals of every subscription"""
    logger.info("Running scheduled subscriptions renewal")
    submitted = await get_coordinator().renew_due_subscriptions()
    logger.info(f"Subscriptions renewal completed, {len(submitted)} renewals sent")
    return submitted


if config.RENEWAL_INTERVAL_SECONDS > 0:
    scheduler.add_job(renew_subscriptions, "interval", seconds=config.RENEWAL_INTERVAL_SECONDS)
