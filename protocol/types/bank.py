# MIT License
# Copyright (c) 2025 Hashborn

from pydantic import BaseModel, Field
from typing import Dict, List

class AccountStake(BaseModel):
    """Staked principal of one account and the start of its accrual interval."""
    address: str
    principal: int = 0
    checkpoint_block: int = 0   # Block height of last stake / settlement

class StakingState(BaseModel):
    stakes: Dict[str, AccountStake] = Field(default_factory=dict)
    total_staked: int = 0

class RewardState(BaseModel):
    reward_per_block: int

class QuorumState(BaseModel):
    managers: List[str]                                 # Fixed, ordered
    confirmed: List[str] = Field(default_factory=list)  # Ordered set, subset of managers

class BankState(BaseModel):
    """Aggregate state of the staking bank."""
    address: str
    token: str                  # Token ledger contract address
    staking: StakingState = Field(default_factory=StakingState)
    rewards: RewardState
    quorum: QuorumState
