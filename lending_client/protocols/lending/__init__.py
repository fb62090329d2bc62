"""Anchor lending program: addresses, account layouts, instructions, probing."""
from .addresses import AddressDeriver, LendingAccounts
from .probe import AccountProbe

__all__ = ["AccountProbe", "AddressDeriver", "LendingAccounts"]
