# MIT License
# Copyright (c) 2025 Hashborn

"""
Chain tests: automining, signed calls, atomicity, event delivery,
persistence and genesis.
"""

import pytest

from protocol.config.params import CURRENT_NETWORK, DECIMALS, MINTING_AMOUNT
from protocol.config.genesis import GenesisConfig
from protocol.types.call import Call
from protocol.types.common import CallType, InsufficientBalance, ValidationError
from tinybank.core.chain import Chain
from tinybank.core.clock import BlockClock
from tinybank.core.context import ExecutionContext
from tinybank.core.events import ALL_EVENTS
from tinybank.core.token import TokenLedger

ONE = 10**DECIMALS


def signed_call(signer, call_type, target, args, nonce):
    call = Call(
        call_type=call_type,
        sender=signer.address,
        target=target,
        args=args,
        nonce=nonce,
        pub_key=signer.pub.hex(),
    )
    call.sign(signer.priv)
    return call


# ═══════════════════════════════════════════════════════════════════
# BLOCK CLOCK
# ═══════════════════════════════════════════════════════════════════

class TestBlockClock:
    def test_open_block_commits_on_success(self):
        clock = BlockClock()
        with clock.open_block() as height:
            assert height == 1
            assert clock.current == 1
            assert clock.height == 0
        assert clock.height == 1
        assert not clock.is_open

    def test_open_block_discards_on_error(self):
        clock = BlockClock(5)
        with pytest.raises(RuntimeError):
            with clock.open_block():
                raise RuntimeError("revert")
        assert clock.height == 5
        assert clock.current == 5

    def test_blocks_do_not_nest(self):
        clock = BlockClock()
        with clock.open_block():
            with pytest.raises(RuntimeError):
                with clock.open_block():
                    pass

    def test_negative_height_rejected(self):
        with pytest.raises(ValueError):
            BlockClock(-1)


# ═══════════════════════════════════════════════════════════════════
# ATOMIC SCOPES
# ═══════════════════════════════════════════════════════════════════

class TestAtomicScopes:
    @pytest.fixture
    def ctx_token(self, signers):
        ctx = ExecutionContext()
        token = TokenLedger.deploy(ctx, "tbkc1token", signers[0].address, "MyToken", "MT", DECIMALS, MINTING_AMOUNT)
        return ctx, token

    def test_failure_restores_state(self, ctx_token, signers):
        ctx, token = ctx_token
        with pytest.raises(InsufficientBalance):
            with ctx.atomic():
                token.transfer(signers[0].address, ONE, signers[1].address)
                token.transfer(signers[1].address, 2 * ONE, signers[2].address)

        assert token.balance_of(signers[0].address) == MINTING_AMOUNT * ONE
        assert token.balance_of(signers[1].address) == 0

    def test_caught_inner_failure_keeps_outer_changes(self, ctx_token, signers):
        ctx, token = ctx_token
        with ctx.atomic():
            token.transfer(signers[0].address, ONE, signers[1].address)
            try:
                token.transfer(signers[1].address, 2 * ONE, signers[2].address)
            except InsufficientBalance:
                pass

        assert token.balance_of(signers[1].address) == ONE
        assert token.balance_of(signers[2].address) == 0

    def test_events_published_only_on_commit(self, ctx_token, signers):
        ctx, token = ctx_token
        seen = []
        ctx.bus.subscribe("Transfer", lambda **kw: seen.append(kw))

        with ctx.atomic() as scope:
            token.transfer(signers[0].address, ONE, signers[1].address)
            assert seen == []
        assert len(seen) == 1
        assert [e.name for e in scope.events] == ["Transfer"]
        assert seen[0]["to_address"] == signers[1].address

        with pytest.raises(InsufficientBalance):
            with ctx.atomic():
                token.transfer(signers[0].address, ONE, signers[1].address)
                token.transfer(signers[2].address, ONE, signers[1].address)
        assert len(seen) == 1


# ═══════════════════════════════════════════════════════════════════
# AUTOMINING
# ═══════════════════════════════════════════════════════════════════

class TestAutomining:
    def test_starts_with_genesis_block(self, chain):
        assert chain.height == 0
        genesis = chain.get_block(0)
        assert genesis.header.height == 0
        assert genesis.header.chain_id == CURRENT_NETWORK.chain_id
        assert chain.last_hash == genesis.hash()

    def test_each_call_mines_one_block(self, chain, token, signers):
        height = chain.height
        chain.transact(signers[0].address, token.address, "transfer", amount=1, to=signers[1].address)
        chain.transact(signers[0].address, token.address, "transfer", amount=1, to=signers[1].address)
        assert chain.height == height + 2

    def test_failed_call_mines_nothing(self, chain, token, signers):
        height, last_hash = chain.height, chain.last_hash
        nonce = chain.nonce(signers[1].address)

        with pytest.raises(InsufficientBalance):
            chain.transact(signers[1].address, token.address, "transfer", amount=1, to=signers[0].address)

        assert chain.height == height
        assert chain.last_hash == last_hash
        assert chain.nonce(signers[1].address) == nonce
        assert chain.get_block(height + 1) is None

    def test_blocks_are_linked(self, chain, token, signers):
        chain.transact(signers[0].address, token.address, "transfer", amount=1, to=signers[1].address)
        block = chain.get_block(chain.height)
        parent = chain.get_block(chain.height - 1)

        assert block.header.prev_hash == parent.hash()
        assert block.method == "transfer"
        assert block.sender == signers[0].address
        assert block.header.state_root == chain.state_root()

    def test_state_root_tracks_state(self, chain, token, signers):
        before = chain.state_root()
        chain.transact(signers[0].address, token.address, "transfer", amount=1, to=signers[1].address)
        assert chain.state_root() != before

    def test_mine_empty_blocks(self, chain):
        assert chain.mine(3) == 3
        assert chain.get_block(3).method == ""
        with pytest.raises(ValueError):
            chain.mine(0)

    def test_unknown_contract_and_method(self, chain, token, signers):
        with pytest.raises(ValidationError):
            chain.transact(signers[0].address, "tbkc1missing", "transfer", amount=1, to=signers[1].address)
        with pytest.raises(ValidationError):
            chain.transact(signers[0].address, token.address, "_mint", to=signers[0].address, amount=1)
        with pytest.raises(ValidationError):
            chain.transact(signers[0].address, token.address, "transfer", amount=1)

    def test_contract_addresses_follow_deployer_nonce(self, chain, signers):
        first = chain.deploy_token(signers[0].address)
        second = chain.deploy_token(signers[0].address)
        assert first.address != second.address
        assert first.address.startswith("tbkc1")
        assert chain.token() is first

    def test_receipts(self, chain, token, signers):
        receipt = chain.transact(signers[0].address, token.address, "transfer", amount=1, to=signers[1].address)
        stored = chain.receipts.get(receipt.call_hash)

        assert stored.status == "confirmed"
        assert stored.block_height == chain.height
        chain.mine(2)
        assert chain.receipts.get_confirmations(receipt.call_hash, chain.height) == 3


# ═══════════════════════════════════════════════════════════════════
# SIGNED CALLS
# ═══════════════════════════════════════════════════════════════════

class TestSignedCalls:
    def test_execute_signed_call(self, chain, token, signers):
        call = signed_call(signers[0], CallType.TRANSFER, token.address,
                           {"amount": ONE, "to": signers[1].address}, chain.nonce(signers[0].address))
        nonce = call.nonce

        receipt = chain.execute(call)

        assert receipt.succeeded
        assert receipt.call_hash == call.hash()
        assert token.balance_of(signers[1].address) == ONE
        assert chain.nonce(signers[0].address) == nonce + 1

    def test_reverted_call_gets_failed_receipt(self, chain, token, signers):
        height = chain.height
        call = signed_call(signers[1], CallType.TRANSFER, token.address,
                           {"amount": ONE, "to": signers[0].address}, 0)

        receipt = chain.execute(call)

        assert receipt.status == "failed"
        assert receipt.error == "insufficient balance"
        assert chain.height == height
        assert chain.nonce(signers[1].address) == 0

    def test_bad_signature_rejected(self, chain, token, signers):
        call = signed_call(signers[0], CallType.TRANSFER, token.address,
                           {"amount": ONE, "to": signers[1].address}, chain.nonce(signers[0].address))
        call.args["amount"] = 100 * ONE

        with pytest.raises(ValidationError, match="Invalid signature"):
            chain.execute(call)
        assert chain.receipts.get(call.hash()) is None

    def test_pub_key_must_match_sender(self, chain, token, signers):
        call = signed_call(signers[1], CallType.TRANSFER, token.address,
                           {"amount": ONE, "to": signers[1].address}, 0)
        call.sender = signers[0].address

        with pytest.raises(ValidationError, match="does not match sender"):
            chain.execute(call)

    def test_unsigned_call_rejected(self, chain, token, signers):
        call = Call(call_type=CallType.TRANSFER, sender=signers[0].address, target=token.address,
                    args={"amount": 1, "to": signers[1].address}, nonce=0)
        with pytest.raises(ValidationError, match="not signed"):
            chain.execute(call)

    def test_replay_rejected(self, chain, token, signers):
        call = signed_call(signers[0], CallType.TRANSFER, token.address,
                           {"amount": ONE, "to": signers[1].address}, chain.nonce(signers[0].address))
        chain.execute(call)

        with pytest.raises(ValidationError, match="Invalid nonce"):
            chain.execute(call)
        assert token.balance_of(signers[1].address) == ONE

    def test_malformed_amount_rejected_without_receipt(self, chain, token, signers):
        height = chain.height
        nonce = chain.nonce(signers[0].address)
        call = signed_call(signers[0], CallType.TRANSFER, token.address,
                           {"amount": -1, "to": signers[1].address}, nonce)

        with pytest.raises(ValidationError, match="non-negative"):
            chain.execute(call)
        assert chain.receipts.get(call.hash()) is None
        assert chain.height == height
        assert chain.nonce(signers[0].address) == nonce

    def test_unknown_argument_rejected_without_receipt(self, chain, token, signers):
        call = signed_call(signers[0], CallType.TRANSFER, token.address,
                           {"amount": ONE, "recipient": signers[1].address}, chain.nonce(signers[0].address))

        with pytest.raises(ValidationError, match="Invalid arguments for transfer"):
            chain.execute(call)
        assert chain.receipts.get(call.hash()) is None


# ═══════════════════════════════════════════════════════════════════
# EVENTS
# ═══════════════════════════════════════════════════════════════════

def test_bus_sees_only_committed_calls(chain, token, signers):
    seen = []
    chain.events.subscribe(ALL_EVENTS, lambda **kw: seen.append(kw))

    with pytest.raises(InsufficientBalance):
        chain.transact(signers[1].address, token.address, "transfer", amount=1, to=signers[0].address)
    assert seen == []

    chain.transact(signers[0].address, token.address, "transfer", amount=1, to=signers[1].address)
    assert len(seen) == 1
    assert seen[0]["event"] == "Transfer"
    assert seen[0]["contract"] == token.address
    assert seen[0]["block"] == chain.height


# ═══════════════════════════════════════════════════════════════════
# PERSISTENCE
# ═══════════════════════════════════════════════════════════════════

def test_state_survives_restart(tmp_path, signers):
    db_path = str(tmp_path / "chain.db")
    owner = signers[0].address
    managers = [s.address for s in signers[1:6]]

    chain = Chain(db_path)
    token = chain.deploy_token(owner, "MyToken", "MT", DECIMALS, MINTING_AMOUNT)
    bank = chain.deploy_bank(owner, token.address, managers)
    chain.transact(owner, token.address, "set_manager", manager=bank.address)
    chain.transact(owner, token.address, "approve", spender=bank.address, amount=10 * ONE)
    chain.transact(owner, bank.address, "stake", amount=10 * ONE)
    chain.transact(managers[0], bank.address, "confirm")
    height, root, nonce = chain.height, chain.state_root(), chain.nonce(owner)
    chain.db.close()

    reloaded = Chain(db_path)
    try:
        assert reloaded.height == height
        assert reloaded.state_root() == root
        assert reloaded.nonce(owner) == nonce
        assert reloaded.token().address == token.address
        assert reloaded.bank().staked(owner) == 10 * ONE
        assert reloaded.bank().confirmations() == (managers[0],)

        # Accrual continues across the restart: stake block -> confirm -> withdraw
        receipt = reloaded.transact(owner, bank.address, "withdraw", amount=10 * ONE)
        assert receipt.result == 2 * ONE
        assert reloaded.get_block(height + 1).header.prev_hash == reloaded.get_block(height).hash()
    finally:
        reloaded.db.close()


# ═══════════════════════════════════════════════════════════════════
# GENESIS
# ═══════════════════════════════════════════════════════════════════

class TestGenesis:
    def test_apply_genesis(self, chain, signers):
        deployer = signers[0].address
        managers = [s.address for s in signers[1:6]]
        genesis = GenesisConfig.for_network(CURRENT_NETWORK, deployer, managers)
        genesis.alloc = {signers[6].address: 5 * ONE}

        token, bank = chain.apply_genesis(genesis)

        assert chain.token() is token
        assert chain.bank() is bank
        assert token.minter() == bank.address
        assert token.balance_of(signers[6].address) == 5 * ONE
        assert token.total_supply() == CURRENT_NETWORK.initial_mint * ONE
        assert bank.manager_list() == tuple(managers)
        assert bank.reward_per_block() == CURRENT_NETWORK.reward_per_block

        with pytest.raises(RuntimeError):
            chain.apply_genesis(genesis)

    def test_chain_id_mismatch(self, chain, signers):
        genesis = GenesisConfig(chain_id="other-chain", deployer=signers[0].address,
                                managers=[signers[1].address])
        with pytest.raises(ValueError):
            chain.apply_genesis(genesis)

    def test_over_allocated_genesis_leaves_chain_empty(self, tmp_path, signers):
        db_path = str(tmp_path / "chain.db")
        genesis = GenesisConfig.for_network(CURRENT_NETWORK, signers[0].address, [signers[1].address])
        genesis.alloc = {signers[7].address: 10 * ONE, signers[8].address: 10**40}

        chain = Chain(db_path)
        with pytest.raises(ValidationError, match="initial mint"):
            chain.apply_genesis(genesis)
        assert chain.height == 0
        assert chain.token_address is None
        assert chain.contracts == {}
        chain.db.close()

        reopened = Chain(db_path)
        try:
            assert reopened.bank_address is None
            genesis.alloc = {signers[7].address: 10 * ONE}
            token, _ = reopened.apply_genesis(genesis)
            assert token.balance_of(signers[7].address) == 10 * ONE
        finally:
            reopened.db.close()

    def test_invalid_genesis_managers_rejected_before_deploy(self, chain, signers):
        genesis = GenesisConfig.for_network(CURRENT_NETWORK, signers[0].address,
                                            [signers[1].address, signers[1].address])
        with pytest.raises(ValidationError, match="duplicates"):
            chain.apply_genesis(genesis)
        assert chain.height == 0
        assert chain.token_address is None

    def test_genesis_file_roundtrip(self, tmp_path, signers):
        path = str(tmp_path / "genesis.json")
        genesis = GenesisConfig.for_network(CURRENT_NETWORK, signers[0].address, [signers[1].address])
        genesis.save(path)
        assert GenesisConfig.load(path) == genesis
