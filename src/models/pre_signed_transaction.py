import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import String, TIMESTAMP, ForeignKey, Integer, JSON, UUID, UniqueConstraint, func
from sqlalchemy.orm import relationship, Mapped, mapped_column

from src.models.base import Base

if TYPE_CHECKING:
    from src.models.subscription import Subscription


class PreSignedTransaction(Base):
    __tablename__ = "pre_signed_transactions"

    id: Mapped[uuid.UUID] = mapped_column(UUID, primary_key=True, default=uuid.uuid4)
    subscription_id: Mapped[uuid.UUID] = mapped_column(
        UUID, ForeignKey("subscriptions.id", ondelete="CASCADE"), nullable=False
    )
    batch_key: Mapped[str] = mapped_column(String, nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False)  # Insertion order within the subscription
    valid_from: Mapped[int] = mapped_column(Integer, nullable=False)
    valid_until: Mapped[int] = mapped_column(Integer, nullable=False)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP, default=func.current_timestamp())

    subscription: Mapped["Subscription"] = relationship("Subscription", back_populates="pre_signed_txs")

    __table_args__ = (UniqueConstraint("subscription_id", "batch_key", name="uq_pre_signed_tx_batch_key"),)
