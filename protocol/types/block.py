# MIT License
# Copyright (c) 2025 Hashborn

from pydantic import BaseModel, Field
from typing import Any, Dict, List
from ..crypto.hash import sha256_hex, canonical_json

class BlockHeader(BaseModel):
    height: int                 # block number
    prev_hash: str              # hex string of SHA256 of previous header
    timestamp: int              # unix time
    chain_id: str               # "tinybank-devnet-1"
    call_root: str              # SHA256 of the call mined in this block ("" for empty blocks)
    state_root: str             # Merkle root of all contract states after the block

    def hash(self) -> str:
        return sha256_hex(canonical_json(self.model_dump()))

class Block(BaseModel):
    """A mined block. Automining puts at most one call in each block."""
    header: BlockHeader
    sender: str = ""
    target: str = ""
    method: str = ""
    args: Dict[str, Any] = Field(default_factory=dict)
    events: List[Dict[str, Any]] = Field(default_factory=list)

    def hash(self) -> str:
        return self.header.hash()
