# MIT License
# Copyright (c) 2025 Hashborn

from ecdsa import SigningKey, VerifyingKey, SECP256k1 # type: ignore
from .hash import sha256

def generate_private_key() -> bytes:
    """Generates a random 32-byte secp256k1 private key."""
    return SigningKey.generate(curve=SECP256k1).to_string()

def private_key_from_seed(seed: str) -> bytes:
    """Deterministic private key from a text seed (devnet accounts, tests)."""
    secexp = int.from_bytes(sha256(seed.encode("utf-8")), "big") % (SECP256k1.order - 1) + 1
    return SigningKey.from_secret_exponent(secexp, curve=SECP256k1).to_string()

def public_key_from_private(priv_bytes: bytes) -> bytes:
    """Returns compressed 33-byte public key from private key."""
    sk = SigningKey.from_string(priv_bytes, curve=SECP256k1)
    vk = sk.get_verifying_key()
    return vk.to_string("compressed")

def sign(message_hash: bytes, priv_bytes: bytes) -> bytes:
    """Signs a message hash with private key. Returns 64-byte (r,s) signature."""
    sk = SigningKey.from_string(priv_bytes, curve=SECP256k1)
    # 32 bytes r + 32 bytes s
    return sk.sign_digest_deterministic(
        message_hash,
        sigencode=lambda r, s, order: r.to_bytes(32, 'big') + s.to_bytes(32, 'big'),
    )

def verify(message_hash: bytes, signature: bytes, pub_bytes: bytes) -> bool:
    """Verifies ECDSA signature."""
    if len(signature) != 64:
        return False
    try:
        vk = VerifyingKey.from_string(pub_bytes, curve=SECP256k1)
        return vk.verify_digest(
            signature,
            message_hash,
            sigdecode=lambda sig, order: (int.from_bytes(sig[:32], 'big'), int.from_bytes(sig[32:], 'big')),
        )
    except Exception:
        return False
