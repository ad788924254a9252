import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import String, TIMESTAMP, func, UUID, UniqueConstraint
from sqlalchemy.orm import relationship, Mapped, mapped_column

from src.models.base import Base

if TYPE_CHECKING:
    from src.models.pre_signed_transaction import PreSignedTransaction


class Subscription(Base):
    __tablename__ = "subscriptions"

    id: Mapped[uuid.UUID] = mapped_column(UUID, primary_key=True, default=uuid.uuid4)
    user_address: Mapped[str] = mapped_column(String, nullable=False, index=True)
    service_name: Mapped[str] = mapped_column(String, nullable=False)
    subscription_wallet: Mapped[str] = mapped_column(String, nullable=False)
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP, default=func.current_timestamp())

    pre_signed_txs: Mapped[list["PreSignedTransaction"]] = relationship(
        "PreSignedTransaction",
        back_populates="subscription",
        cascade="all, delete-orphan",
        order_by="PreSignedTransaction.position",
    )

    __table_args__ = (UniqueConstraint("user_address", "service_name", name="uq_subscription_user_service"),)
