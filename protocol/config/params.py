# MIT License
# Copyright (c) 2025 Hashborn

import os
from typing import Dict, Optional

# Global Constants
DECIMALS = 18
MINTING_AMOUNT = 100            # Whole tokens minted to the token deployer
UINT256_MAX = 2**256 - 1


class NetworkConfig:
    def __init__(self,
                 network_id: str,
                 chain_id: str,
                 token_name: str = "MyToken",
                 token_symbol: str = "MT",
                 token_decimals: int = DECIMALS,
                 initial_mint: int = MINTING_AMOUNT,
                 # Minimal units per block; one whole token when unset
                 reward_per_block: Optional[int] = None,
                 bech32_prefix_acc: str = "tbk",
                 bech32_prefix_contract: str = "tbkc",
                 # Receipt store size (RPC lookups)
                 max_receipts: int = 10_000,
                 # Devnet specific deterministic keys (hex strings)
                 deployer_priv_key: Optional[str] = None):
        self.network_id = network_id
        self.chain_id = chain_id
        self.token_name = token_name
        self.token_symbol = token_symbol
        self.token_decimals = token_decimals
        self.initial_mint = initial_mint
        self.reward_per_block = reward_per_block if reward_per_block is not None else 10**token_decimals
        self.bech32_prefix_acc = bech32_prefix_acc
        self.bech32_prefix_contract = bech32_prefix_contract
        self.max_receipts = max_receipts
        self.deployer_priv_key = deployer_priv_key

NETWORKS: Dict[str, NetworkConfig] = {
    "devnet": NetworkConfig(
        network_id="devnet",
        chain_id="tinybank-devnet-1",
        # Deterministic Deployer Key for Devnet
        deployer_priv_key="4f3edf982522b4e51b7e8b5f2f9c4d1d7a9e5f8c2b6d4e1a3c5b7d9e0f1a2b3c"
    ),
    "testnet": NetworkConfig(
        network_id="testnet",
        chain_id="tinybank-testnet-1",
        initial_mint=1_000_000,
        max_receipts=100_000,
    ),
}


def get_network(name: str) -> NetworkConfig:
    if name not in NETWORKS:
        raise ValueError(f"Unknown network '{name}' (known: {', '.join(sorted(NETWORKS))})")
    return NETWORKS[name]


def network_for_chain_id(chain_id: str) -> NetworkConfig:
    for network in NETWORKS.values():
        if network.chain_id == chain_id:
            return network
    raise ValueError(f"No known network with chain_id '{chain_id}'")


# Default to devnet, override with TINYBANK_NETWORK
CURRENT_NETWORK = get_network(os.environ.get("TINYBANK_NETWORK", "devnet"))
