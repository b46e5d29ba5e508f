# MIT License
# Copyright (c) 2025 Hashborn

import logging

from protocol.types.bank import AccountStake, RewardState
from protocol.types.uint import require_uint, checked_sub, checked_mul

logger = logging.getLogger(__name__)


def calculate_reward(elapsed_blocks: int, reward_per_block: int) -> int:
    """
    Flat block reward: elapsed_blocks * reward_per_block.

    Independent of the staked amount. Raises ArithmeticOverflow if the
    product does not fit in 256 bits.
    """
    return checked_mul(elapsed_blocks, reward_per_block)


class RewardEngine:
    """
    Computes rewards from the current rate.

    Owns `reward_per_block`. There is no rate history: a rate change applies to
    the whole open interval of every account from the moment it is made.
    """

    def __init__(self, state: RewardState):
        self._state = state

    @property
    def reward_per_block(self) -> int:
        return self._state.reward_per_block

    def compute_reward(self, stake: AccountStake, current_block: int) -> int:
        """
        Reward owed for `stake` at `current_block`:
        (current_block - checkpoint_block) * reward_per_block.

        An account without principal has no open accrual interval and is owed
        nothing, even if it still carries a checkpoint from an earlier stake.
        Otherwise withdraw(0) would mint rewards to accounts that hold no stake.
        """
        if stake.principal == 0:
            return 0
        elapsed = checked_sub(current_block, stake.checkpoint_block)
        return calculate_reward(elapsed, self._state.reward_per_block)

    def apply_rate(self, new_rate: int) -> int:
        """Sets a new rate and returns the previous one. Only reachable through the quorum gate."""
        new_rate = require_uint(new_rate, "reward_per_block")
        old_rate = self._state.reward_per_block
        self._state.reward_per_block = new_rate
        logger.info(f"Reward per block changed: {old_rate} -> {new_rate}")
        return old_rate
