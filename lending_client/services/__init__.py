"""Service modules"""
from .cache import QueryCache
from .faucet import ManualTokenFaucet
from .operations import LendingOperations
from .provisioner import ProvisionTarget, Provisioner
from .queries import LendingQueries
from .submitter import TransactionSubmitter

__all__ = [
    "LendingOperations",
    "LendingQueries",
    "ManualTokenFaucet",
    "ProvisionTarget",
    "Provisioner",
    "QueryCache",
    "TransactionSubmitter",
]
