# MIT License
# Copyright (c) 2025 Hashborn

from dataclasses import dataclass
from typing import List

import pytest

from protocol.config.params import DECIMALS, MINTING_AMOUNT
from protocol.crypto.keys import private_key_from_seed, public_key_from_private
from protocol.crypto.addresses import address_from_pubkey
from tinybank.core.chain import Chain


@dataclass
class Signer:
    priv: bytes
    pub: bytes
    address: str


def make_signer(seed: str) -> Signer:
    priv = private_key_from_seed(seed)
    pub = public_key_from_private(priv)
    return Signer(priv=priv, pub=pub, address=address_from_pubkey(pub))


# ═══════════════════════════════════════════════════════════════════
# FIXTURES
# ═══════════════════════════════════════════════════════════════════

@pytest.fixture(scope="session")
def signers() -> List[Signer]:
    """Eleven deterministic accounts. signers[0] deploys, signers[1..5] manage the bank."""
    return [make_signer(f"tinybank-test-signer-{i}") for i in range(11)]


@pytest.fixture
def chain():
    c = Chain()
    yield c
    c.db.close()


@pytest.fixture
def token(chain, signers):
    return chain.deploy_token(signers[0].address, "MyToken", "MT", DECIMALS, MINTING_AMOUNT)


@pytest.fixture
def managers(signers) -> List[str]:
    return [s.address for s in signers[1:6]]


@pytest.fixture
def bank(chain, signers, token, managers):
    """Bank over `token`, already holding the minter slot."""
    b = chain.deploy_bank(signers[0].address, token.address, managers)
    chain.transact(signers[0].address, token.address, "set_manager", manager=b.address)
    return b
