"""Price oracle services."""
from .pyth import PythOracle

__all__ = ["PythOracle"]
