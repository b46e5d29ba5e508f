# MIT License
# Copyright (c) 2025 Hashborn

"""
Staking ledger: per-account principal, aggregate total and accrual checkpoints.

Pure bookkeeping. Token movement and reward payment belong to the bank.
"""

import logging
from typing import List

from protocol.types.bank import AccountStake, StakingState
from protocol.types.common import InsufficientStake, ERR_INSUFFICIENT_STAKE
from protocol.types.uint import checked_add

logger = logging.getLogger(__name__)


class StakingLedger:
    def __init__(self, state: StakingState):
        self._state = state

    @property
    def total_staked(self) -> int:
        return self._state.total_staked

    def get(self, account: str) -> AccountStake:
        """Returns the account's stake record, or a zero record if it never staked."""
        stake = self._state.stakes.get(account)
        if stake is None:
            return AccountStake(address=account)
        return stake

    def staked(self, account: str) -> int:
        return self.get(account).principal

    def accounts(self) -> List[str]:
        return [addr for addr, stake in self._state.stakes.items() if stake.principal > 0]

    def credit(self, account: str, amount: int, block: int) -> AccountStake:
        """Adds principal and restarts the accrual interval at `block`."""
        stake = self.get(account)
        principal = checked_add(stake.principal, amount)
        total = checked_add(self._state.total_staked, amount)

        stake.principal = principal
        stake.checkpoint_block = block
        self._state.stakes[account] = stake
        self._state.total_staked = total
        return stake

    def debit(self, account: str, amount: int) -> AccountStake:
        stake = self.get(account)
        if amount > stake.principal:
            raise InsufficientStake(ERR_INSUFFICIENT_STAKE)

        stake.principal -= amount
        self._state.total_staked -= amount
        self._state.stakes[account] = stake
        return stake

    def checkpoint(self, account: str, block: int) -> None:
        stake = self.get(account)
        stake.checkpoint_block = block
        self._state.stakes[account] = stake
