"""Shared test fixtures."""
from __future__ import annotations

import textwrap
from pathlib import Path

import pytest
from solders.keypair import Keypair

from lending_client.config import (
    AppConfig,
    AssetConfig,
    ClusterConfig,
    FaucetConfig,
    PriceOracleConfig,
    ProgramConfig,
    PythConfig,
    WalletConfig,
)
from lending_client.wallets.keypair import KeypairWallet
from tests.fakes import (
    FALLBACK_PRICE_ACCOUNT,
    PROGRAM_ID,
    SOL_MINT,
    USDC_MINT,
    FakeLedger,
    FakeOracle,
    RecordingCache,
)


# ---------------------------------------------------------------------------
# Config fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def sample_cluster_config() -> ClusterConfig:
    return ClusterConfig(
        name="devnet",
        rpc_endpoints=("https://rpc1.example.com", "https://rpc2.example.com"),
        rpc_timeout=10,
        commitment="confirmed",
        confirm_poll_interval=0.0,
    )


@pytest.fixture()
def sample_app_config(sample_cluster_config: ClusterConfig) -> AppConfig:
    return AppConfig(
        cluster=sample_cluster_config,
        program=ProgramConfig(
            program_id=str(PROGRAM_ID),
            default_liquidation_threshold=80,
            default_max_ltv=75,
            assets={
                "USDC": AssetConfig(mint=str(USDC_MINT), decimals=6),
                "SOL": AssetConfig(mint=str(SOL_MINT), decimals=9),
            },
            reference_asset="USDC",
        ),
        wallet=WalletConfig(),
        price_oracle=PriceOracleConfig(
            pyth=PythConfig(fallback_price_account=str(FALLBACK_PRICE_ACCOUNT))
        ),
        faucet=FaucetConfig(),
    )


# ---------------------------------------------------------------------------
# Collaborator fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture()
def wallet() -> KeypairWallet:
    return KeypairWallet(Keypair())


@pytest.fixture()
def oracle() -> FakeOracle:
    return FakeOracle()


@pytest.fixture()
def cache() -> RecordingCache:
    return RecordingCache()


# ---------------------------------------------------------------------------
# Config YAML fixture
# ---------------------------------------------------------------------------

SAMPLE_YAML = textwrap.dedent(f"""\
    cluster:
      name: devnet
      rpc_endpoints: ["https://rpc.example.com"]
      rpc_timeout: 10
      commitment: confirmed
    program:
      program_id: "{PROGRAM_ID}"
      default_liquidation_threshold: 80
      default_max_ltv: 75
      reference_asset: usdc
      assets:
        USDC: {{mint: "{USDC_MINT}", decimals: 6}}
        sol: {{mint: "{SOL_MINT}", decimals: 9}}
    wallet:
      keypair_path: "/tmp/id.json"
    price_oracle:
      provider: pyth
      pyth:
        hermes_url: "https://hermes.example.com"
        shard_id: 0
        feeds: {{SOL: "aaa", USDC: "bbb"}}
    faucet:
      enabled: false
""")


@pytest.fixture()
def sample_yaml_path(tmp_path: Path) -> Path:
    cfg_file = tmp_path / "config.yaml"
    cfg_file.write_text(SAMPLE_YAML)
    return cfg_file
