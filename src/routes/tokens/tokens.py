from http import HTTPStatus

from fastapi import HTTPException

from src.config import config
from src.interfaces.subscription import GenesisWalletResponse
from src.interfaces.tokens import GrantedTokensRequest, MintingSignatureRequest
from src.routes.tokens import router


@router.post("/genesis_wallet_address", description="Address of the service wallet")  # type: ignore
async def genesis_wallet_address() -> GenesisWalletResponse:
    if not config.GENESIS_WALLET_ADDRESS:
        raise HTTPException(
            status_code=HTTPStatus.NOT_FOUND,
            detail="Genesis wallet address is not configured.",
        )
    return GenesisWalletResponse(address=config.GENESIS_WALLET_ADDRESS)


@router.post("/granted_tokens", description="Amount of tokens granted to a user by a community")  # type: ignore
async def granted_tokens(request: GrantedTokensRequest) -> None:
    raise HTTPException(
        status_code=HTTPStatus.NOT_IMPLEMENTED,
        detail=f"Granted tokens of {request.community_name} are not available yet.",
    )


@router.post("/get_minting_signature", description="Signature of a community tokens minting transaction")  # type: ignore
async def get_minting_signature(request: MintingSignatureRequest) -> None:
    raise HTTPException(
        status_code=HTTPStatus.NOT_IMPLEMENTED,
        detail=f"Minting signatures of {request.community_name} are not available yet.",
    )
