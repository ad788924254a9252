from fastapi import APIRouter

router = APIRouter(prefix="/api/v0.1", tags=["Subscriptions"])

from src.routes.subscriptions.subscriptions import (  # noqa
    add_subscription_txs,
    is_user_subscribed,
    related_communities,
    set_subscription_info,
    subscribe,
    subscription_period,
)
