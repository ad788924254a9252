from fastapi import APIRouter

router = APIRouter(prefix="/api/v0.1", tags=["Tokens"])

from src.routes.tokens.tokens import genesis_wallet_address, get_minting_signature, granted_tokens  # noqa
