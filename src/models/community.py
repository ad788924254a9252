from datetime import datetime
from typing import Any

from sqlalchemy import String, TIMESTAMP, JSON, func
from sqlalchemy.orm import Mapped, mapped_column

from src.models.base import Base


class Community(Base):
    __tablename__ = "communities"

    name: Mapped[str] = mapped_column(String, primary_key=True)
    # "metadata" is reserved by declarative classes
    community_metadata: Mapped[dict[str, Any]] = mapped_column("metadata", JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP, default=func.current_timestamp())
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP, default=func.current_timestamp(), onupdate=func.current_timestamp()
    )
