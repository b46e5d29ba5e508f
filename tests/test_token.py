# MIT License
# Copyright (c) 2025 Hashborn

"""
Token ledger tests: metadata, minting rights, transfers, allowances.
"""

import pytest

from protocol.config.params import DECIMALS, MINTING_AMOUNT, UINT256_MAX
from protocol.crypto.addresses import ZERO_ADDRESS
from protocol.types.common import (
    Unauthorized, InsufficientBalance, InsufficientAllowance, ArithmeticOverflow, ValidationError,
)

ONE = 10**DECIMALS
INITIAL = MINTING_AMOUNT * ONE


class TestBasicState:
    def test_name(self, token):
        assert token.name() == "MyToken"

    def test_symbol(self, token):
        assert token.symbol() == "MT"

    def test_decimals(self, token):
        assert token.decimals() == DECIMALS

    def test_total_supply(self, token):
        assert token.total_supply() == INITIAL

    def test_owner_and_minter_start_as_deployer(self, token, signers):
        assert token.owner() == signers[0].address
        assert token.minter() == signers[0].address


class TestMint:
    def test_initial_mint_goes_to_deployer(self, token, signers):
        assert token.balance_of(signers[0].address) == INITIAL

    def test_initial_mint_is_a_transfer_from_zero_address(self, chain, token, signers):
        block = chain.get_block(chain.height)
        assert block.method == "deploy_token"
        assert block.events == [{
            "contract": token.address,
            "event": "Transfer",
            "block": chain.height,
            "args": {"from_address": ZERO_ADDRESS, "to_address": signers[0].address, "amount": INITIAL},
        }]

    def test_unauthorized_mint_reverts(self, chain, token, signers):
        hacker = signers[2].address
        height = chain.height

        with pytest.raises(Unauthorized, match="You are not authorized to manage this contract"):
            chain.transact(hacker, token.address, "mint", amount=10_000 * ONE, to=hacker)

        assert token.balance_of(hacker) == 0
        assert token.total_supply() == INITIAL
        assert chain.height == height

    def test_minter_can_mint(self, chain, token, signers):
        chain.transact(signers[0].address, token.address, "mint", amount=5 * ONE, to=signers[1].address)
        assert token.balance_of(signers[1].address) == 5 * ONE
        assert token.total_supply() == INITIAL + 5 * ONE

    def test_mint_overflow_reverts(self, chain, token, signers):
        with pytest.raises(ArithmeticOverflow, match="arithmetic overflow"):
            chain.transact(signers[0].address, token.address, "mint", amount=UINT256_MAX, to=signers[1].address)

        assert token.total_supply() == INITIAL
        assert token.balance_of(signers[1].address) == 0


class TestTransfer:
    def test_transfer_half_token(self, chain, token, signers):
        signer0, signer1 = signers[0].address, signers[1].address
        amount = ONE // 2

        receipt = chain.transact(signer0, token.address, "transfer", amount=amount, to=signer1)

        assert receipt.succeeded
        assert receipt.events[0]["event"] == "Transfer"
        assert receipt.events[0]["args"] == {"from_address": signer0, "to_address": signer1, "amount": amount}
        assert token.balance_of(signer1) == amount
        assert token.balance_of(signer0) == INITIAL - amount

    def test_transfer_more_than_balance_reverts(self, chain, token, signers):
        with pytest.raises(InsufficientBalance, match="insufficient balance"):
            chain.transact(signers[0].address, token.address, "transfer", amount=200 * ONE, to=signers[1].address)

        assert token.balance_of(signers[0].address) == INITIAL

    def test_zero_and_self_transfer(self, chain, token, signers):
        signer0 = signers[0].address
        chain.transact(signer0, token.address, "transfer", amount=0, to=signers[1].address)
        chain.transact(signer0, token.address, "transfer", amount=ONE, to=signer0)

        assert token.balance_of(signer0) == INITIAL
        assert token.balance_of(signers[1].address) == 0
        assert token.total_supply() == INITIAL

    @pytest.mark.parametrize("amount", [-1, True, "1", 1.5, UINT256_MAX + 1])
    def test_invalid_amount_rejected(self, chain, token, signers, amount):
        with pytest.raises(ValidationError):
            chain.transact(signers[0].address, token.address, "transfer", amount=amount, to=signers[1].address)


class TestAllowance:
    def test_approve_sets_allowance(self, chain, token, signers):
        owner, spender = signers[0].address, signers[1].address
        receipt = chain.transact(owner, token.address, "approve", spender=spender, amount=3 * ONE)

        assert token.allowance(owner, spender) == 3 * ONE
        assert receipt.events[0]["event"] == "Approval"

        # Approve overwrites, it does not add
        chain.transact(owner, token.address, "approve", spender=spender, amount=ONE)
        assert token.allowance(owner, spender) == ONE

    def test_transfer_from_spends_allowance(self, chain, token, signers):
        owner, spender, to = signers[0].address, signers[1].address, signers[2].address
        chain.transact(owner, token.address, "approve", spender=spender, amount=3 * ONE)

        chain.transact(spender, token.address, "transfer_from", owner=owner, to=to, amount=2 * ONE)

        assert token.balance_of(to) == 2 * ONE
        assert token.balance_of(owner) == INITIAL - 2 * ONE
        assert token.allowance(owner, spender) == ONE

    def test_transfer_from_over_allowance_reverts(self, chain, token, signers):
        owner, spender = signers[0].address, signers[1].address
        chain.transact(owner, token.address, "approve", spender=spender, amount=ONE)

        with pytest.raises(InsufficientAllowance, match="insufficient allowance"):
            chain.transact(spender, token.address, "transfer_from", owner=owner, to=spender, amount=2 * ONE)

        assert token.allowance(owner, spender) == ONE

    def test_allowance_checked_before_balance(self, chain, token, signers):
        poor, spender = signers[3].address, signers[1].address
        with pytest.raises(InsufficientAllowance):
            chain.transact(spender, token.address, "transfer_from", owner=poor, to=spender, amount=ONE)

    def test_transfer_from_over_balance_keeps_allowance(self, chain, token, signers):
        poor, spender = signers[3].address, signers[1].address
        chain.transact(poor, token.address, "approve", spender=spender, amount=ONE)

        with pytest.raises(InsufficientBalance):
            chain.transact(spender, token.address, "transfer_from", owner=poor, to=spender, amount=ONE)

        assert token.allowance(poor, spender) == ONE


class TestSetManager:
    def test_only_owner_can_set_manager(self, chain, token, signers):
        with pytest.raises(Unauthorized, match="You are not the owner of this contract"):
            chain.transact(signers[1].address, token.address, "set_manager", manager=signers[1].address)
        assert token.minter() == signers[0].address

    def test_set_manager_moves_minting_right(self, chain, token, signers):
        owner, new_minter = signers[0].address, signers[1].address
        receipt = chain.transact(owner, token.address, "set_manager", manager=new_minter)

        assert token.minter() == new_minter
        assert token.owner() == owner
        assert receipt.events[0]["event"] == "MinterChanged"

        chain.transact(new_minter, token.address, "mint", amount=ONE, to=new_minter)
        assert token.balance_of(new_minter) == ONE

        with pytest.raises(Unauthorized):
            chain.transact(owner, token.address, "mint", amount=ONE, to=owner)
