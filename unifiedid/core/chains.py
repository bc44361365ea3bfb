"""
Supported networks and their registry deployments.

Testnet ships with the Sepolia mother registry baked in; mainnet addresses are
not published yet and must be supplied through ``contract_addresses``.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional


TESTNET = "testnet"
MAINNET = "mainnet"

ENVIRONMENTS = (TESTNET, MAINNET)


@dataclass(frozen=True)
class NetworkInfo:
    """Static description of a chain the SDK knows how to talk to."""

    chain_id: int
    name: str
    environment: str
    default_rpc_url: Optional[str] = None
    # registry role -> address; "mother", "child", "storage_util"
    contracts: Dict[str, str] = field(default_factory=dict)


SEPOLIA = NetworkInfo(
    chain_id=11155111,
    name="sepolia",
    environment=TESTNET,
    default_rpc_url="https://ethereum-sepolia-rpc.publicnode.com",
    contracts={
        "mother": "0x21068b37d05575B4D7DFa5393c7b140f65dA0355",
    },
)

ETHEREUM = NetworkInfo(
    chain_id=1,
    name="ethereum",
    environment=MAINNET,
    default_rpc_url=None,
    contracts={},
)

NETWORKS: Dict[int, NetworkInfo] = {
    SEPOLIA.chain_id: SEPOLIA,
    ETHEREUM.chain_id: ETHEREUM,
}

CONTRACT_ROLES = ("mother", "child", "storage_util")


def get_network(chain_id: int) -> Optional[NetworkInfo]:
    return NETWORKS.get(chain_id)


def supported_chain_ids(environment: str) -> list[int]:
    """Chain ids accepted for an environment."""

    return [info.chain_id for info in NETWORKS.values() if info.environment == environment]


def is_chain_supported(environment: str, chain_id: int) -> bool:
    info = NETWORKS.get(chain_id)
    return info is not None and info.environment == environment


def resolve_contract_addresses(
    chain_id: int,
    overrides: Optional[Dict[str, Optional[str]]] = None,
) -> Dict[str, Optional[str]]:
    """Merge built-in deployments for ``chain_id`` with caller overrides.

    Roles without a known deployment map to ``None``.
    """
    info = NETWORKS.get(chain_id)
    base = dict(info.contracts) if info else {}
    resolved: Dict[str, Optional[str]] = {role: base.get(role) for role in CONTRACT_ROLES}
    for role, address in (overrides or {}).items():
        if address:
            resolved[role] = address
    return resolved


__all__ = [
    "TESTNET",
    "MAINNET",
    "ENVIRONMENTS",
    "NetworkInfo",
    "SEPOLIA",
    "ETHEREUM",
    "NETWORKS",
    "CONTRACT_ROLES",
    "get_network",
    "supported_chain_ids",
    "is_chain_supported",
    "resolve_contract_addresses",
]
