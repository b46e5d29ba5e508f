# MIT License
# Copyright (c) 2025 Hashborn

"""
Fungible token ledger.

Balances, allowance-based delegated transfers and a single authorized-minter
slot. The owner (deployer) may hand the minter slot to another account, which
is how the bank gets the right to mint staking rewards.
"""

import logging

from protocol.types.token import TokenState
from protocol.types.common import (
    Unauthorized, InsufficientBalance, InsufficientAllowance,
    ERR_NOT_MINTER, ERR_NOT_OWNER, ERR_INSUFFICIENT_BALANCE, ERR_INSUFFICIENT_ALLOWANCE,
)
from protocol.types.uint import require_uint, checked_add, checked_mul
from protocol.crypto.addresses import ZERO_ADDRESS
from .context import ExecutionContext
from .contract import Contract

logger = logging.getLogger(__name__)


class TokenLedger(Contract):
    KIND = "token"
    ENTRYPOINTS = frozenset({"transfer", "approve", "transfer_from", "mint", "set_manager"})

    def __init__(self, ctx: ExecutionContext, state: TokenState):
        super().__init__(ctx, state.address)
        self._state = state

    @classmethod
    def deploy(cls, ctx: ExecutionContext, address: str, deployer: str, name: str, symbol: str,
               decimals: int, initial_mint: int) -> "TokenLedger":
        """
        Creates the ledger and mints `initial_mint` whole tokens to the deployer.

        The deployer becomes owner and initial minter.
        """
        require_uint(decimals, "decimals")
        require_uint(initial_mint, "initial_mint")
        token = cls(ctx, TokenState(
            address=address,
            name=name,
            symbol=symbol,
            decimals=decimals,
            owner=deployer,
            minter=deployer,
        ))
        with ctx.atomic():
            token._mint(deployer, checked_mul(initial_mint, 10**decimals))
        logger.info(f"Deployed token {symbol} at {address} (supply {token.total_supply()})")
        return token

    @property
    def state(self) -> TokenState:
        return self._state

    def _load(self, state: TokenState) -> None:
        self._state = state

    # --- Views ---
    def name(self) -> str:
        return self._state.name

    def symbol(self) -> str:
        return self._state.symbol

    def decimals(self) -> int:
        return self._state.decimals

    def total_supply(self) -> int:
        return self._state.total_supply

    def owner(self) -> str:
        return self._state.owner

    def minter(self) -> str:
        return self._state.minter

    def balance_of(self, account: str) -> int:
        return self._state.balances.get(account, 0)

    def allowance(self, owner: str, spender: str) -> int:
        return self._state.allowances.get(owner, {}).get(spender, 0)

    # --- Entrypoints ---
    def transfer(self, caller: str, amount: int, to: str) -> bool:
        amount = require_uint(amount)
        with self.ctx.atomic():
            self._move(caller, to, amount)
        return True

    def approve(self, caller: str, spender: str, amount: int) -> bool:
        amount = require_uint(amount)
        with self.ctx.atomic():
            self._state.allowances.setdefault(caller, {})[spender] = amount
            self._emit("Approval", owner=caller, spender=spender, amount=amount)
        return True

    def transfer_from(self, caller: str, owner: str, to: str, amount: int) -> bool:
        """Moves `amount` from `owner` to `to`, spending the caller's allowance."""
        amount = require_uint(amount)
        with self.ctx.atomic():
            allowed = self.allowance(owner, caller)
            if allowed < amount:
                raise InsufficientAllowance(ERR_INSUFFICIENT_ALLOWANCE)
            self._state.allowances.setdefault(owner, {})[caller] = allowed - amount
            self._move(owner, to, amount)
        return True

    def mint(self, caller: str, amount: int, to: str) -> bool:
        amount = require_uint(amount)
        if caller != self._state.minter:
            raise Unauthorized(ERR_NOT_MINTER)
        with self.ctx.atomic():
            self._mint(to, amount)
        return True

    def set_manager(self, caller: str, manager: str) -> bool:
        """Hands the single minter slot to `manager`. Owner only."""
        if caller != self._state.owner:
            raise Unauthorized(ERR_NOT_OWNER)
        with self.ctx.atomic():
            previous = self._state.minter
            self._state.minter = manager
            self._emit("MinterChanged", previous=previous, minter=manager)
        logger.info(f"Token {self.address}: minter {previous} -> {manager}")
        return True

    # --- Internals ---
    def _move(self, src: str, dst: str, amount: int) -> None:
        balances = self._state.balances
        src_balance = balances.get(src, 0)
        if src_balance < amount:
            raise InsufficientBalance(ERR_INSUFFICIENT_BALANCE)
        balances[src] = src_balance - amount
        balances[dst] = checked_add(balances.get(dst, 0), amount)
        self._emit("Transfer", from_address=src, to_address=dst, amount=amount)
        logger.debug(f"Token {self._state.symbol}: {src} -> {dst}: {amount}")

    def _mint(self, to: str, amount: int) -> None:
        self._state.total_supply = checked_add(self._state.total_supply, amount)
        self._state.balances[to] = checked_add(self._state.balances.get(to, 0), amount)
        self._emit("Transfer", from_address=ZERO_ADDRESS, to_address=to, amount=amount)
        logger.info(f"Minted {amount} {self._state.symbol} to {to}")
