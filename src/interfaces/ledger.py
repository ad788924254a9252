import hashlib
import json
from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, Field, field_validator

from src.interfaces.base import CamelModel
from src.utils.address import Address


class TxSignature(CamelModel):
    pub_key: str
    signature: str


class Transfer(CamelModel):
    type: Literal["Transfer"] = "Transfer"
    account_id: int
    from_address: Address = Field(alias="from")
    to: Address
    token: int
    amount: str  # Big integers are carried as decimal strings
    fee: str
    nonce: int
    signature: TxSignature | None = None


class TransferFrom(CamelModel):
    type: Literal["TransferFrom"] = "TransferFrom"
    account_id: int
    from_address: Address = Field(alias="from")
    to: Address
    token: int
    amount: str
    fee: str
    nonce: int
    valid_from: int  # Unix timestamps, in seconds
    valid_until: int
    signature: TxSignature | None = None


class SubscriptionTx(CamelModel):
    """A pre-signed renewal: the transfer to the subscription wallet and the burn paying for it."""

    transfer_to_sub: TransferFrom
    burn_tx: Transfer
    burn_tx_eth_signature: str

    def valid_from(self) -> datetime:
        """When this transaction can start being executed."""
        return datetime.fromtimestamp(self.transfer_to_sub.valid_from, tz=timezone.utc)

    def valid_until(self) -> datetime:
        """When this transaction stops being valid."""
        return datetime.fromtimestamp(self.transfer_to_sub.valid_until, tz=timezone.utc)

    def is_valid_at(self, moment: datetime) -> bool:
        return self.valid_from() <= moment <= self.valid_until()

    def batch_key(self) -> str:
        """Deterministic identifier of the (transfer, burn) pair, used to deduplicate submissions."""
        payload = json.dumps(self.model_dump(mode="json", by_alias=True), sort_keys=True)
        return hashlib.sha256(payload.encode()).hexdigest()


class LedgerTransaction(BaseModel):
    """An entry of a wallet transactions history, as returned by the ledger API."""

    hash: str | None = None
    created_at: datetime
    success: bool | None = None  # None while the transaction is still pending
    fail_reason: str | None = None

    @field_validator("created_at")
    def ensure_timezone(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @property
    def failed(self) -> bool:
        return self.success is False
