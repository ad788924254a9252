from src.interfaces.ledger import TransferFrom
from src.interfaces.subscription import SubscriptionRequest


class GrantedTokensRequest(SubscriptionRequest):
    pass


class MintingSignatureRequest(SubscriptionRequest):
    minting_tx: TransferFrom
