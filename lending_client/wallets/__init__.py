"""Signing credentials: the caller's wallet and the faucet operator capability."""
from .keypair import KeypairWallet, load_wallet
from .operator import OperatorCapability, load_operator_capability

__all__ = [
    "KeypairWallet",
    "OperatorCapability",
    "load_operator_capability",
    "load_wallet",
]
