from typing import Any

from pydantic import BaseModel, Field

from src.interfaces.base import CamelModel


class Community(BaseModel):
    name: str = Field(min_length=1)
    metadata: dict[str, Any] = Field(default_factory=dict)


class DeclareCommunityRequest(BaseModel):
    community: Community


class CommunityRequest(CamelModel):
    community_name: str
