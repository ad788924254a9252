from fastapi import APIRouter

router = APIRouter(prefix="/api/v0.1", tags=["Communities"])

from src.routes.communities.communities import declare_community, get_community  # noqa
