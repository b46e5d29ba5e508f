# MIT License
# Copyright (c) 2025 Hashborn

"""
TinyBank: staking with block-indexed rewards and a unanimous manager quorum.

Stakers approve the bank on the token ledger and stake; the bank pulls the
tokens into custody. On withdrawal the bank returns principal from custody
and mints the accrued reward, which requires the bank to hold the token's
minter slot. Changing the reward rate requires a confirmation from every
manager; applying the change is open to any caller.
"""

import logging
from typing import List, Optional, Tuple

from protocol.types.bank import BankState, RewardState, QuorumState
from protocol.types.common import QuorumStatus
from protocol.types.uint import require_uint
from .context import ExecutionContext
from .contract import Contract
from .token import TokenLedger
from .staking import StakingLedger
from .rewards import RewardEngine
from .quorum import QuorumGate, validate_managers

logger = logging.getLogger(__name__)


class TinyBank(Contract):
    KIND = "bank"
    ENTRYPOINTS = frozenset({"stake", "withdraw", "confirm", "set_reward_per_block"})

    def __init__(self, ctx: ExecutionContext, state: BankState, token: TokenLedger):
        if token.address != state.token:
            raise ValueError(f"Token {token.address} does not match bank state token {state.token}")
        super().__init__(ctx, state.address)
        self._token = token
        self._load(state)

    @classmethod
    def deploy(cls, ctx: ExecutionContext, address: str, token: TokenLedger, managers: List[str],
               reward_per_block: Optional[int] = None) -> "TinyBank":
        """
        Creates a bank over `token` with a fixed manager set.

        The reward rate defaults to one whole token per block.
        """
        managers = validate_managers(managers)
        if reward_per_block is None:
            reward_per_block = 10**token.decimals()
        reward_per_block = require_uint(reward_per_block, "reward_per_block")

        bank = cls(ctx, BankState(
            address=address,
            token=token.address,
            rewards=RewardState(reward_per_block=reward_per_block),
            quorum=QuorumState(managers=managers),
        ), token)
        logger.info(f"Deployed bank at {address} over token {token.address} with {len(managers)} managers")
        return bank

    @property
    def state(self) -> BankState:
        return self._state

    def _load(self, state: BankState) -> None:
        self._state = state
        self._staking = StakingLedger(state.staking)
        self._rewards = RewardEngine(state.rewards)
        self._quorum = QuorumGate(state.quorum)

    @property
    def token(self) -> TokenLedger:
        return self._token

    # --- Views ---
    def total_staked(self) -> int:
        return self._staking.total_staked

    def staked(self, account: str) -> int:
        return self._staking.staked(account)

    def checkpoint_of(self, account: str) -> int:
        return self._staking.get(account).checkpoint_block

    def stakers(self) -> List[str]:
        return self._staking.accounts()

    def managers(self, index: int) -> str:
        return self._quorum.manager(index)

    def manager_list(self) -> Tuple[str, ...]:
        return self._quorum.managers

    def reward_per_block(self) -> int:
        return self._rewards.reward_per_block

    def pending_reward(self, account: str) -> int:
        """Reward a withdrawal would pay at the current block."""
        return self._rewards.compute_reward(self._staking.get(account), self.ctx.block_number)

    def confirmations(self) -> Tuple[str, ...]:
        return self._quorum.confirmed

    def quorum_status(self) -> QuorumStatus:
        return self._quorum.status

    # --- Entrypoints ---
    def stake(self, caller: str, amount: int) -> int:
        """Pulls `amount` from the caller into custody. Returns the caller's new principal."""
        amount = require_uint(amount)
        with self.ctx.atomic():
            self._token.transfer_from(self.address, caller, self.address, amount)
            stake = self._staking.credit(caller, amount, self.ctx.block_number)
            self._emit("Staked", account=caller, amount=amount)

        logger.info(f"{caller} staked {amount} (principal {stake.principal}, total {self.total_staked()})")
        return stake.principal

    def withdraw(self, caller: str, amount: int) -> int:
        """
        Returns `amount` of principal and pays the full accrued reward.

        The reward covers every block since the caller's checkpoint regardless
        of how much is withdrawn; the checkpoint then moves to the current
        block. Returns the reward paid.
        """
        amount = require_uint(amount)
        with self.ctx.atomic():
            block = self.ctx.block_number
            reward = self._rewards.compute_reward(self._staking.get(caller), block)
            self._staking.debit(caller, amount)

            self._token.transfer(self.address, amount, caller)
            if reward > 0:
                self._token.mint(self.address, reward, caller)

            self._staking.checkpoint(caller, block)
            self._emit("Withdrawn", account=caller, amount=amount, reward=reward)

        logger.info(f"{caller} withdrew {amount} with reward {reward} (total {self.total_staked()})")
        return reward

    def confirm(self, caller: str) -> bool:
        with self.ctx.atomic():
            recorded = self._quorum.confirm(caller)
            if recorded:
                self._emit("Confirmed", manager=caller, confirmations=len(self._quorum.confirmed))
        return recorded

    def set_reward_per_block(self, caller: str, new_rate: int) -> int:
        """Applies a new rate once every manager confirmed. Open to any caller. Returns the old rate."""
        new_rate = require_uint(new_rate, "reward_per_block")
        with self.ctx.atomic():
            old_rate = self._quorum.execute(lambda: self._rewards.apply_rate(new_rate))
            self._emit("RewardPerBlockUpdated", old_rate=old_rate, new_rate=new_rate, executor=caller)
        return old_rate
