"""Protocol interfaces for the lending client's external collaborators."""
from .chain import ChainClient
from .price_oracle import PriceOracle
from .wallet import Wallet

__all__ = ["ChainClient", "PriceOracle", "Wallet"]
