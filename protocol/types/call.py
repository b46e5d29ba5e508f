# MIT License
# Copyright (c) 2025 Hashborn

from pydantic import BaseModel, Field
from typing import Dict, Any
from ..crypto.hash import sha256_hex, canonical_json
from ..crypto.keys import sign as crypto_sign
from .common import CallType

class Call(BaseModel):
    """A signed request to run one contract entrypoint as `sender`."""
    call_type: CallType
    sender: str          # Bech32 account address (tbk1...)
    target: str          # Contract address (tbkc1...)
    args: Dict[str, Any] = Field(default_factory=dict)
    nonce: int
    pub_key: str = ""    # hex public key of sender
    signature: str = ""  # hex ECDSA (r || s), default empty

    def signing_payload(self) -> Dict[str, Any]:
        return {
            "call_type": self.call_type.value,
            "sender": self.sender,
            "target": self.target,
            "args": self.args,
            "nonce": self.nonce,
            "pub_key": self.pub_key,
        }

    def hash(self) -> str:
        # Signature is not part of the hash
        return sha256_hex(canonical_json(self.signing_payload()))

    def sign(self, priv_key_bytes: bytes):
        """Signs the call hash."""
        msg_hash = bytes.fromhex(self.hash())
        self.signature = crypto_sign(msg_hash, priv_key_bytes).hex()
