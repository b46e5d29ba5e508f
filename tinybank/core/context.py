# MIT License
# Copyright (c) 2025 Hashborn

from typing import Any, Optional

from .clock import BlockClock
from .events import Event, EventBus
from .journal import Journal


class ExecutionContext:
    """What a running contract can see of the chain: the block number, the journal and the event bus."""

    def __init__(self, clock: Optional[BlockClock] = None, bus: Optional[EventBus] = None):
        self.clock = clock if clock is not None else BlockClock()
        self.bus = bus if bus is not None else EventBus()
        self.journal = Journal(self.bus)

    @property
    def block_number(self) -> int:
        return self.clock.current

    def atomic(self):
        return self.journal.atomic()

    def emit(self, contract: str, name: str, **args: Any) -> None:
        self.journal.record(Event(contract=contract, name=name, block=self.block_number, args=args))
