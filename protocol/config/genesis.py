# MIT License
# Copyright (c) 2025 Hashborn

"""
Genesis configuration.

Describes the contracts deployed when a chain starts empty: one token ledger,
one bank over it, and optional initial token allocations paid out of the
deployer's initial mint.
"""

import json
from pydantic import BaseModel, Field
from typing import Dict, List, Optional
from .params import CURRENT_NETWORK, NetworkConfig


class TokenGenesis(BaseModel):
    name: str = CURRENT_NETWORK.token_name
    symbol: str = CURRENT_NETWORK.token_symbol
    decimals: int = CURRENT_NETWORK.token_decimals
    initial_mint: int = CURRENT_NETWORK.initial_mint   # Whole tokens


class GenesisConfig(BaseModel):
    chain_id: str = CURRENT_NETWORK.chain_id
    deployer: str                                      # Account that deploys both contracts
    token: TokenGenesis = Field(default_factory=TokenGenesis)
    managers: List[str]
    reward_per_block: Optional[int] = None             # Minimal units; None = network default
    alloc: Dict[str, int] = Field(default_factory=dict)  # address -> minimal units, from deployer

    @classmethod
    def load(cls, path: str) -> "GenesisConfig":
        with open(path, "r") as f:
            return cls.model_validate(json.load(f))

    def save(self, path: str):
        with open(path, "w") as f:
            f.write(self.model_dump_json(indent=2))

    @classmethod
    def for_network(cls, network: NetworkConfig, deployer: str, managers: List[str]) -> "GenesisConfig":
        return cls(
            chain_id=network.chain_id,
            deployer=deployer,
            token=TokenGenesis(
                name=network.token_name,
                symbol=network.token_symbol,
                decimals=network.token_decimals,
                initial_mint=network.initial_mint,
            ),
            managers=managers,
            reward_per_block=network.reward_per_block,
        )
