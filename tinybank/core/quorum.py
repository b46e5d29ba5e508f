# MIT License
# Copyright (c) 2025 Hashborn

"""
Unanimous confirmation gate for the protected operation.

A fixed, ordered manager set shares one pending-change slot. Managers confirm
(idempotently); once every manager has confirmed, anyone may execute the
protected action, which clears the slot. Confirmations are not bound to the
value that is eventually applied.
"""

import logging
from typing import Callable, List, Tuple, TypeVar

from protocol.types.bank import QuorumState
from protocol.types.common import (
    QuorumStatus, Unauthorized, QuorumNotMet, ValidationError,
    ERR_NOT_MANAGER, ERR_NOT_ALL_CONFIRMED,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def validate_managers(managers: List[str]) -> List[str]:
    if not managers:
        raise ValidationError("Manager set cannot be empty")
    if any(not isinstance(m, str) or not m for m in managers):
        raise ValidationError("Manager addresses must be non-empty strings")
    if len(set(managers)) != len(managers):
        raise ValidationError("Manager set contains duplicates")
    return list(managers)


class QuorumGate:
    def __init__(self, state: QuorumState):
        validate_managers(state.managers)
        self._state = state

    @property
    def managers(self) -> Tuple[str, ...]:
        return tuple(self._state.managers)

    def manager(self, index: int) -> str:
        if index < 0 or index >= len(self._state.managers):
            raise IndexError(f"Manager index {index} out of range (0..{len(self._state.managers) - 1})")
        return self._state.managers[index]

    def is_manager(self, account: str) -> bool:
        return account in self._state.managers

    @property
    def confirmed(self) -> Tuple[str, ...]:
        return tuple(self._state.confirmed)

    def has_confirmed(self, manager: str) -> bool:
        return manager in self._state.confirmed

    @property
    def is_ready(self) -> bool:
        return set(self._state.confirmed) == set(self._state.managers)

    @property
    def status(self) -> QuorumStatus:
        if not self._state.confirmed:
            return QuorumStatus.IDLE
        if self.is_ready:
            return QuorumStatus.READY
        return QuorumStatus.COLLECTING

    def confirm(self, caller: str) -> bool:
        """
        Records the caller's confirmation.

        Returns True if it was newly recorded, False if the caller had already
        confirmed. Raises Unauthorized for non-managers.
        """
        if not self.is_manager(caller):
            raise Unauthorized(ERR_NOT_MANAGER)
        if caller in self._state.confirmed:
            return False

        self._state.confirmed.append(caller)
        logger.info(f"Manager {caller} confirmed ({len(self._state.confirmed)}/{len(self._state.managers)})")
        return True

    def execute(self, action: Callable[[], T]) -> T:
        """Runs `action` if every manager confirmed, then clears all confirmations."""
        if not self.is_ready:
            raise QuorumNotMet(ERR_NOT_ALL_CONFIRMED)

        result = action()
        self._state.confirmed.clear()
        return result
