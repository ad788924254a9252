from typing import Annotated

from pydantic import AfterValidator
from web3 import Web3


def format_address(address: str) -> str:
    """
    Validates a ledger account address and returns its checksummed form.

    Args:
        address: The address string to validate

    Returns:
        The EIP-55 checksummed address

    Raises:
        ValueError: If the address is not a valid 20 bytes hex address
    """
    try:
        return Web3.to_checksum_address(address)
    except (ValueError, TypeError):
        raise ValueError(f"Invalid address format: {address}. Must be a valid ledger address.")


Address = Annotated[str, AfterValidator(format_address)]
