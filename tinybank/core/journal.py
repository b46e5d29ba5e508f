# MIT License
# Copyright (c) 2025 Hashborn

"""
All-or-nothing execution scopes.

Every contract registers with the journal. Entering an atomic scope
snapshots each registered contract; an exception anywhere inside it
restores every snapshot, drops contracts registered inside the scope and
discards the events emitted inside the scope. Scopes nest, so an inner
failure that is caught leaves the outer scope consistent. Events reach the
bus only when the outermost scope commits.
"""

from contextlib import contextmanager
from typing import Any, Iterator, List, Tuple
import logging

from .events import Event, EventBus

logger = logging.getLogger(__name__)


class Scope:
    """Handle returned by Journal.atomic(). `events` is filled in on successful exit."""

    def __init__(self):
        self.events: List[Event] = []


class Journal:
    def __init__(self, bus: EventBus):
        self.bus = bus
        self._participants: List[Any] = []
        self._pending: List[Event] = []
        self._depth = 0

    def pending(self) -> List[Event]:
        """Events buffered by the open scopes, oldest first."""
        return list(self._pending)

    def register(self, participant: Any) -> None:
        """Adds a participant. It must provide snapshot() and restore(snapshot)."""
        self._participants.append(participant)

    def record(self, event: Event) -> None:
        if self._depth == 0:
            # Outside any scope there is nothing to roll back
            self.bus.publish(event)
            return
        self._pending.append(event)

    @contextmanager
    def atomic(self) -> Iterator[Scope]:
        scope = Scope()
        mark = len(self._pending)
        registered = len(self._participants)
        snapshots: List[Tuple[Any, Any]] = [(p, p.snapshot()) for p in self._participants]

        self._depth += 1
        try:
            yield scope
        except BaseException:
            for participant, snapshot in snapshots:
                participant.restore(snapshot)
            del self._participants[registered:]
            del self._pending[mark:]
            raise
        finally:
            self._depth -= 1

        scope.events = list(self._pending[mark:])
        if self._depth == 0:
            events, self._pending = self._pending, []
            for event in events:
                self.bus.publish(event)
