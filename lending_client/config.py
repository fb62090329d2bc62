"""Configuration loader — reads config.yaml, interpolates env vars, validates."""
from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from solders.pubkey import Pubkey

logger = logging.getLogger(__name__)

DEFAULT_LIQUIDATION_THRESHOLD = 80
DEFAULT_MAX_LTV = 75
PYTH_RECEIVER_PROGRAM_ID = "pythWSnswVUd12oZpeFP8e9CVaEqJg25g1Vtc2biRsT"
PYTH_FALLBACK_PRICE_ACCOUNT = "7UVimffxr9ow1uXYxsr4LHAcV58mLzhmwaeKvJ1pjLiE"
# Feed the lending program checks borrows against (the USDC/USD feed).
BORROW_PRICE_FEED_ID = "0xeaa020c61cc479712813461ce153894a96a6c00b21ed0cfc2798d1f9a9e9c94a"

PRODUCTION_CLUSTERS = frozenset({"mainnet-beta", "mainnet"})

# ---------------------------------------------------------------------------
# Frozen config dataclasses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ClusterConfig:
    name: str = "devnet"
    rpc_endpoints: tuple[str, ...] = ()
    rpc_timeout: int = 30
    commitment: str = "confirmed"
    confirm_poll_interval: float = 1.0


@dataclass(frozen=True)
class AssetConfig:
    mint: str = ""
    decimals: int = 9


@dataclass(frozen=True)
class ProgramConfig:
    program_id: str = ""
    default_liquidation_threshold: int = DEFAULT_LIQUIDATION_THRESHOLD
    default_max_ltv: int = DEFAULT_MAX_LTV
    assets: dict[str, AssetConfig] = field(default_factory=dict)
    reference_asset: str = "USDC"


@dataclass(frozen=True)
class WalletConfig:
    keypair_path: str = ""
    secret_key: str = ""


@dataclass(frozen=True)
class PythConfig:
    hermes_url: str = "https://hermes.pyth.network/v2/updates/price/latest"
    receiver_program_id: str = PYTH_RECEIVER_PROGRAM_ID
    shard_id: int = 0
    fallback_price_account: str = PYTH_FALLBACK_PRICE_ACCOUNT
    feeds: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class PriceOracleConfig:
    provider: str = "pyth"
    pyth: PythConfig = field(default_factory=PythConfig)


@dataclass(frozen=True)
class FaucetConfig:
    enabled: bool = False
    operator_secret: str = ""


@dataclass(frozen=True)
class AppConfig:
    cluster: ClusterConfig = field(default_factory=ClusterConfig)
    program: ProgramConfig = field(default_factory=ProgramConfig)
    wallet: WalletConfig = field(default_factory=WalletConfig)
    price_oracle: PriceOracleConfig = field(default_factory=PriceOracleConfig)
    faucet: FaucetConfig = field(default_factory=FaucetConfig)

    def asset(self, symbol: str) -> AssetConfig:
        try:
            return self.program.assets[symbol.upper()]
        except KeyError:
            raise ValueError(f"Unknown asset '{symbol}'") from None


# ---------------------------------------------------------------------------
# Env interpolation
# ---------------------------------------------------------------------------

_ENV_VAR_RE = re.compile(r"\$\{([^}]+)}")


def _interpolate_env(value: Any) -> Any:
    """Recursively replace ${VAR} references with environment variable values."""
    if isinstance(value, str):
        return _ENV_VAR_RE.sub(lambda m: os.environ.get(m.group(1), ""), value)
    if isinstance(value, dict):
        return {k: _interpolate_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_interpolate_env(item) for item in value]
    return value


# ---------------------------------------------------------------------------
# YAML → dataclass builders
# ---------------------------------------------------------------------------


def _build_cluster(raw: dict[str, Any]) -> ClusterConfig:
    return ClusterConfig(
        name=raw.get("name", "devnet"),
        rpc_endpoints=tuple(raw.get("rpc_endpoints", [])),
        rpc_timeout=int(raw.get("rpc_timeout", 30)),
        commitment=raw.get("commitment", "confirmed"),
        confirm_poll_interval=float(raw.get("confirm_poll_interval", 1.0)),
    )


def _build_assets(raw: dict[str, Any]) -> dict[str, AssetConfig]:
    assets: dict[str, AssetConfig] = {}
    for symbol, cfg in raw.items():
        assets[symbol.upper()] = AssetConfig(
            mint=cfg.get("mint", ""),
            decimals=int(cfg.get("decimals", 9)),
        )
    return assets


def _build_program(raw: dict[str, Any]) -> ProgramConfig:
    return ProgramConfig(
        program_id=raw.get("program_id", ""),
        default_liquidation_threshold=int(
            raw.get("default_liquidation_threshold", DEFAULT_LIQUIDATION_THRESHOLD)
        ),
        default_max_ltv=int(raw.get("default_max_ltv", DEFAULT_MAX_LTV)),
        assets=_build_assets(raw.get("assets", {})),
        reference_asset=str(raw.get("reference_asset", "USDC")).upper(),
    )


def _build_wallet(raw: dict[str, Any]) -> WalletConfig:
    return WalletConfig(
        keypair_path=raw.get("keypair_path", ""),
        secret_key=raw.get("secret_key", ""),
    )


def _build_price_oracle(raw: dict[str, Any]) -> PriceOracleConfig:
    pyth_raw = raw.get("pyth", {})
    return PriceOracleConfig(
        provider=raw.get("provider", "pyth"),
        pyth=PythConfig(
            hermes_url=pyth_raw.get("hermes_url", PythConfig.hermes_url),
            receiver_program_id=pyth_raw.get(
                "receiver_program_id", PYTH_RECEIVER_PROGRAM_ID
            ),
            shard_id=int(pyth_raw.get("shard_id", 0)),
            fallback_price_account=pyth_raw.get(
                "fallback_price_account", PYTH_FALLBACK_PRICE_ACCOUNT
            ),
            feeds=dict(pyth_raw.get("feeds", {})),
        ),
    )


def _build_faucet(raw: dict[str, Any]) -> FaucetConfig:
    return FaucetConfig(
        enabled=bool(raw.get("enabled", False)),
        operator_secret=raw.get("operator_secret", ""),
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(config_path: str | Path | None = None) -> AppConfig:
    """Load and validate application configuration from YAML + .env.

    Args:
        config_path: Path to config.yaml. Defaults to ``config.yaml`` in the
            project root (one level up from this package).
    """
    load_dotenv()

    if config_path is None:
        config_path = Path(__file__).resolve().parent.parent / "config.yaml"
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    raw = _interpolate_env(raw)

    cfg = AppConfig(
        cluster=_build_cluster(raw.get("cluster", {})),
        program=_build_program(raw.get("program", {})),
        wallet=_build_wallet(raw.get("wallet", {})),
        price_oracle=_build_price_oracle(raw.get("price_oracle", {})),
        faucet=_build_faucet(raw.get("faucet", {})),
    )

    _validate(cfg)
    logger.info("Configuration loaded from %s", config_path)
    return cfg


def _is_pubkey(value: str) -> bool:
    try:
        Pubkey.from_string(value)
    except (ValueError, TypeError):
        return False
    return True


def _validate(cfg: AppConfig) -> None:
    """Raise on invalid configuration."""
    if not cfg.cluster.rpc_endpoints:
        raise ValueError("At least one RPC endpoint must be configured")

    if not _is_pubkey(cfg.program.program_id):
        raise ValueError(f"Invalid program id '{cfg.program.program_id}'")

    program = cfg.program
    if not 1 <= program.default_liquidation_threshold <= 100:
        raise ValueError("default_liquidation_threshold must be between 1 and 100")
    if not 1 <= program.default_max_ltv <= program.default_liquidation_threshold:
        raise ValueError(
            "default_max_ltv must be between 1 and default_liquidation_threshold"
        )

    for symbol, asset in program.assets.items():
        if not _is_pubkey(asset.mint):
            raise ValueError(f"Asset '{symbol}' has an invalid mint '{asset.mint}'")

    if program.assets and program.reference_asset not in program.assets:
        raise ValueError(
            f"reference_asset '{program.reference_asset}' is not a configured asset"
        )

    if cfg.faucet.enabled:
        if cfg.cluster.name in PRODUCTION_CLUSTERS:
            raise ValueError("The token faucet cannot be enabled on a production cluster")
        if not cfg.faucet.operator_secret:
            raise ValueError("Faucet is enabled but no operator_secret is set")
