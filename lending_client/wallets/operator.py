"""Privileged faucet operator credential."""
from __future__ import annotations

import logging
from dataclasses import dataclass

from solders.keypair import Keypair
from solders.pubkey import Pubkey

from ..config import PRODUCTION_CLUSTERS, AppConfig
from ..errors import ValidationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OperatorCapability:
    """Mint-authority keypair, usable only on non-production clusters."""

    keypair: Keypair
    cluster: str

    def __post_init__(self) -> None:
        if self.cluster in PRODUCTION_CLUSTERS:
            raise ValidationError(
                f"Operator credentials are not allowed on cluster '{self.cluster}'"
            )

    @property
    def pubkey(self) -> Pubkey:
        return self.keypair.pubkey()


def load_operator_capability(config: AppConfig) -> OperatorCapability | None:
    """Build the operator capability from config, or None when the faucet is off."""
    if not config.faucet.enabled:
        return None
    capability = OperatorCapability(
        keypair=Keypair.from_base58_string(config.faucet.operator_secret),
        cluster=config.cluster.name,
    )
    logger.warning(
        "Faucet operator %s loaded for cluster %s", capability.pubkey, capability.cluster
    )
    return capability
