# MIT License
# Copyright (c) 2025 Hashborn

"""
Call receipt tracking.

Stores the outcome of every submitted call for querying.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
import time
import logging
from threading import RLock

logger = logging.getLogger(__name__)


@dataclass
class CallReceipt:
    """
    Call receipt.

    Attributes:
        call_hash: Call hash
        status: 'pending', 'confirmed' or 'failed'
        block_height: Block the call was mined in (None unless confirmed)
        timestamp: When the receipt was last updated (unix timestamp)
        error: Revert reason if the call failed
        events: Events emitted by the call (dicts, see Event.to_dict)
        result: Return value of the entrypoint
    """
    call_hash: str
    status: str  # 'pending', 'confirmed', 'failed'
    block_height: Optional[int] = None
    timestamp: int = 0
    error: Optional[str] = None
    events: List[Dict[str, Any]] = field(default_factory=list)
    result: Any = None

    def __post_init__(self):
        if self.timestamp == 0:
            self.timestamp = int(time.time())

    @property
    def succeeded(self) -> bool:
        return self.status == 'confirmed'

    def to_dict(self) -> dict:
        """Convert receipt to dictionary for API response."""
        return {
            "call_hash": self.call_hash,
            "status": self.status,
            "block_height": self.block_height,
            "timestamp": self.timestamp,
            "error": self.error,
            "events": self.events,
            "result": self.result,
        }


class CallReceiptStore:
    """
    In-memory store for call receipts.

    Thread-safe storage with automatic cleanup of old receipts.
    """

    def __init__(self, max_receipts: int = 10000):
        self.receipts: Dict[str, CallReceipt] = {}
        self.max_receipts = max_receipts
        self.lock = RLock()

    def add_pending(self, call_hash: str) -> CallReceipt:
        with self.lock:
            existing = self.receipts.get(call_hash)
            if existing and existing.status == 'confirmed':
                return existing

            receipt = CallReceipt(call_hash=call_hash, status='pending')
            self._put(receipt)
            logger.debug(f"Added pending receipt: {call_hash[:16]}...")
            return receipt

    def mark_confirmed(self, call_hash: str, block_height: int,
                       events: Optional[List[Dict[str, Any]]] = None, result: Any = None) -> CallReceipt:
        with self.lock:
            receipt = CallReceipt(
                call_hash=call_hash,
                status='confirmed',
                block_height=block_height,
                events=events or [],
                result=result,
            )
            self._put(receipt)
            logger.debug(f"Marked confirmed: {call_hash[:16]}... at height {block_height}")
            return receipt

    def mark_failed(self, call_hash: str, error: str) -> CallReceipt:
        with self.lock:
            receipt = CallReceipt(call_hash=call_hash, status='failed', error=error)
            self._put(receipt)
            logger.debug(f"Marked failed: {call_hash[:16]}... - {error}")
            return receipt

    def discard(self, call_hash: str) -> None:
        """Forgets a call that was rejected before it could run."""
        with self.lock:
            self.receipts.pop(call_hash, None)

    def get(self, call_hash: str) -> Optional[CallReceipt]:
        with self.lock:
            return self.receipts.get(call_hash)

    def get_confirmations(self, call_hash: str, current_height: int) -> Optional[int]:
        """
        Number of confirmations (current_height - block_height + 1), or None if
        the call is unknown or not confirmed.
        """
        with self.lock:
            receipt = self.receipts.get(call_hash)
            if not receipt or receipt.status != 'confirmed' or receipt.block_height is None:
                return None

            return current_height - receipt.block_height + 1

    def _put(self, receipt: CallReceipt) -> None:
        self.receipts[receipt.call_hash] = receipt
        if len(self.receipts) > self.max_receipts:
            self._cleanup_old_receipts()

    def _cleanup_old_receipts(self) -> None:
        """Removes the oldest 10% of receipts."""
        num_to_remove = max(1, len(self.receipts) // 10)

        sorted_receipts = sorted(
            self.receipts.items(),
            key=lambda x: x[1].timestamp
        )

        for call_hash, _ in sorted_receipts[:num_to_remove]:
            del self.receipts[call_hash]

        logger.info(f"Cleaned up {num_to_remove} old receipts (total: {len(self.receipts)})")

    def clear(self) -> None:
        with self.lock:
            self.receipts.clear()
            logger.debug("Cleared all receipts")
