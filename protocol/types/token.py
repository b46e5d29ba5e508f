# MIT License
# Copyright (c) 2025 Hashborn

from pydantic import BaseModel, Field
from typing import Dict

class TokenState(BaseModel):
    """Complete state of a fungible token ledger."""
    address: str
    name: str
    symbol: str
    decimals: int
    total_supply: int = 0
    owner: str                  # Deployer, may reassign the minter slot
    minter: str                 # Single authorized minter slot
    balances: Dict[str, int] = Field(default_factory=dict)
    # owner -> spender -> remaining allowance
    allowances: Dict[str, Dict[str, int]] = Field(default_factory=dict)
