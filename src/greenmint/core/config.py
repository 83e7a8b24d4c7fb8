"""
Green Minting Configuration

Supports a local development chain, the Sepolia testnet and Ethereum mainnet.
Every value can be overridden through environment variables so the same code
runs unchanged in tests, CI and deployments.
"""

from __future__ import annotations

import logging
import os
from enum import Enum

logger = logging.getLogger(__name__)


class NetworkType(Enum):
    HARDHAT = "hardhat"
    SEPOLIA = "sepolia"
    MAINNET = "ethereum_mainnet"


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""
    pass


CHAIN_IDS = {
    NetworkType.HARDHAT: 31337,
    NetworkType.SEPOLIA: 11155111,
    NetworkType.MAINNET: 1,
}


def get_network(value: str | None = None) -> NetworkType:
    """Resolve the active network from an explicit value or GREENMINT_NETWORK."""
    raw = (value if value is not None else os.getenv("GREENMINT_NETWORK", "hardhat")).strip().lower()
    for network in NetworkType:
        if network.value == raw:
            return network
    if raw == "mainnet":
        return NetworkType.MAINNET
    raise ConfigurationError(
        f"Unknown network '{raw}'. Expected one of: "
        + ", ".join(n.value for n in NetworkType)
    )


def resolve_chain_id(network: NetworkType | None = None) -> int:
    """
    Chain id used in the signing domain.

    GREENMINT_CHAIN_ID wins over the network default so forks and private
    chains can be targeted without adding a network entry.
    """
    override = os.getenv("GREENMINT_CHAIN_ID", "").strip()
    if override:
        try:
            chain_id = int(override)
        except ValueError as exc:
            raise ConfigurationError(f"GREENMINT_CHAIN_ID must be an integer, got '{override}'") from exc
        if chain_id <= 0:
            raise ConfigurationError("GREENMINT_CHAIN_ID must be positive")
        logger.debug(
            "Using chain id override %d",
            chain_id,
            extra={"event": "config.chain_id_override", "chain_id": chain_id},
        )
        return chain_id
    return CHAIN_IDS[network or get_network()]


# Token metadata bound into the signing domain
TOKEN_NAME = os.getenv("GREENMINT_TOKEN_NAME", "Green Minting Token")
TOKEN_SYMBOL = os.getenv("GREENMINT_TOKEN_SYMBOL", "GMT")
TOKEN_VERSION = os.getenv("GREENMINT_TOKEN_VERSION", "1")
TOKEN_DECIMALS = 18

DEPLOYMENTS_DIR = os.getenv("GREENMINT_DEPLOYMENTS_DIR", os.path.join(os.getcwd(), "deployments"))
LOG_LEVEL = os.getenv("GREENMINT_LOG_LEVEL", "INFO").upper()

# 100% expressed in basis points
BASIS_POINTS = 10000
UINT256_MAX = 2**256 - 1
