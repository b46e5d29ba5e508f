# MIT License
# Copyright (c) 2025 Hashborn

"""
Contract events and the pub/sub bus they are delivered on.

Contracts never publish directly: events are buffered by the journal and
reach the bus only once the enclosing call has committed.
"""
from dataclasses import dataclass, field
from typing import Dict, List, Callable, Any
import logging

logger = logging.getLogger(__name__)

# Subscribe to this to receive every event
ALL_EVENTS = "*"


@dataclass
class Event:
    """
    A log entry emitted by a contract.

    Attributes:
        contract: Address of the emitting contract
        name: Event name (e.g., 'Transfer', 'Staked')
        block: Block number the event was emitted in
        args: Event arguments
    """
    contract: str
    name: str
    block: int
    args: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "contract": self.contract,
            "event": self.name,
            "block": self.block,
            "args": dict(self.args),
        }


class EventBus:
    """
    Simple event bus for contract events.

    Events are delivered synchronously in the same thread. Callbacks receive
    the event arguments as keyword arguments plus `contract` and `block`.
    """

    def __init__(self):
        self.listeners: Dict[str, List[Callable]] = {}

    def subscribe(self, event_type: str, callback: Callable) -> None:
        """
        Subscribe to an event type.

        Args:
            event_type: Event name (e.g., 'Staked', 'Withdrawn') or ALL_EVENTS
            callback: Function to call when event is emitted
        """
        if event_type not in self.listeners:
            self.listeners[event_type] = []

        self.listeners[event_type].append(callback)
        logger.debug(f"Subscribed to event: {event_type}")

    def unsubscribe(self, event_type: str, callback: Callable) -> None:
        if event_type in self.listeners:
            try:
                self.listeners[event_type].remove(callback)
                logger.debug(f"Unsubscribed from event: {event_type}")
            except ValueError:
                logger.warning(f"Callback not found for event: {event_type}")

    def emit(self, event_type: str, **data: Any) -> None:
        """
        Emit an event to all subscribers of its type and to wildcard subscribers.

        Wildcard subscribers additionally receive `event=<event_type>`.
        """
        listeners = self.listeners.get(event_type, [])
        wildcard = self.listeners.get(ALL_EVENTS, [])

        if not listeners and not wildcard:
            logger.debug(f"No listeners for event: {event_type}")
            return

        logger.debug(f"Emitting event: {event_type} to {len(listeners) + len(wildcard)} listener(s)")

        for callback in listeners:
            try:
                callback(**data)
            except Exception as e:
                logger.error(f"Error in event callback for {event_type}: {e}", exc_info=True)

        for callback in wildcard:
            try:
                callback(event=event_type, **data)
            except Exception as e:
                logger.error(f"Error in wildcard callback for {event_type}: {e}", exc_info=True)

    def publish(self, event: Event) -> None:
        self.emit(event.name, contract=event.contract, block=event.block, **event.args)

    def clear(self, event_type: str = None) -> None:
        """
        Clear all listeners for an event type, or all listeners if no type specified.
        """
        if event_type:
            self.listeners.pop(event_type, None)
            logger.debug(f"Cleared listeners for event: {event_type}")
        else:
            self.listeners.clear()
            logger.debug("Cleared all event listeners")
