from http import HTTPStatus

from fastapi import Depends, HTTPException

from src.interfaces.community import Community, CommunityRequest, DeclareCommunityRequest
from src.routes.communities import router
from src.services.engine import get_store
from src.services.store import SubscriptionStore
from src.utils.logger import setup_logger

logger = setup_logger(__name__)


@router.post("/declare_community", description="Register a community or replace its metadata")  # type: ignore
async def declare_community(request: DeclareCommunityRequest, store: SubscriptionStore = Depends(get_store)) -> None:
    store.declare_community(request.community)
    logger.info(f"Community {request.community.name} declared")


@router.post("/community", description="Get a registered community")  # type: ignore
async def get_community(request: CommunityRequest, store: SubscriptionStore = Depends(get_store)) -> Community:
    community = store.get_community(request.community_name)
    if community is None:
        raise HTTPException(
            status_code=HTTPStatus.NOT_FOUND,
            detail=f"Community {request.community_name} not found.",
        )
    return community
