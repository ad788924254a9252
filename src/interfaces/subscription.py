from datetime import datetime

from pydantic import BaseModel, Field

from src.interfaces.base import CamelModel
from src.interfaces.ledger import SubscriptionTx
from src.utils.address import Address


class Subscription(CamelModel):
    service_name: str
    subscription_wallet: Address
    pre_signed_txs: list[SubscriptionTx] = Field(default_factory=list)


class SubscriptionRequest(CamelModel):
    user: Address
    community_name: str = Field(min_length=1)


class SetSubscriptionInfoRequest(SubscriptionRequest):
    subscription_wallet: Address


class AddSubscriptionTxsRequest(SubscriptionRequest):
    txs: list[SubscriptionTx] = Field(min_length=1)


class SubscribeRequest(SubscriptionRequest):
    subscription_wallet: Address
    txs: list[SubscriptionTx] = Field(default_factory=list)


class SubscriptionCheckResponse(BaseModel):
    subscribed: bool


class SubscriptionPeriodResponse(BaseModel):
    subscribed: bool
    start: datetime | None = None
    end: datetime | None = None


class RelatedCommunitiesRequest(CamelModel):
    user: Address


class RelatedCommunitiesResponse(BaseModel):
    communities: list[str]


class GenesisWalletResponse(BaseModel):
    address: str


class ErrorResponse(BaseModel):
    message: str
