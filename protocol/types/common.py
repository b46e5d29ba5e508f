# MIT License
# Copyright (c) 2025 Hashborn

from enum import Enum


class CallType(str, Enum):
    # Token ledger
    TRANSFER = "transfer"
    APPROVE = "approve"
    TRANSFER_FROM = "transfer_from"
    MINT = "mint"
    SET_MANAGER = "set_manager"     # Grants the single minter slot

    # Bank
    STAKE = "stake"
    WITHDRAW = "withdraw"
    CONFIRM = "confirm"
    SET_REWARD_PER_BLOCK = "set_reward_per_block"  # Quorum protected


class QuorumStatus(str, Enum):
    IDLE = "IDLE"               # No confirmations
    COLLECTING = "COLLECTING"   # 1..N-1 confirmations
    READY = "READY"             # Every manager confirmed


# Revert reasons. These strings are part of the public interface.
ERR_INSUFFICIENT_BALANCE = "insufficient balance"
ERR_INSUFFICIENT_ALLOWANCE = "insufficient allowance"
ERR_INSUFFICIENT_STAKE = "insufficient stake"
ERR_NOT_MINTER = "You are not authorized to manage this contract"
ERR_NOT_OWNER = "You are not the owner of this contract"
ERR_NOT_MANAGER = "You are not a manager"
ERR_NOT_ALL_CONFIRMED = "Not all confirmed yet"
ERR_OVERFLOW = "arithmetic overflow"


class ProtocolError(Exception):
    pass

class ValidationError(ProtocolError):
    pass

class Unauthorized(ProtocolError):
    """Caller lacks the role required by the operation (manager, minter, owner)."""
    pass

class QuorumNotMet(ProtocolError):
    """Protected operation attempted before every manager confirmed."""
    pass

class InsufficientBalance(ProtocolError):
    pass

class InsufficientAllowance(ProtocolError):
    pass

class InsufficientStake(ProtocolError):
    pass

class ArithmeticOverflow(ProtocolError):
    """Result does not fit in an unsigned 256-bit integer. Never wrapped."""
    pass
