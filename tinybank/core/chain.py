# MIT License
# Copyright (c) 2025 Hashborn

from typing import Any, Callable, Dict, Optional
import time
import logging
import json
import threading

from protocol.types.block import Block, BlockHeader
from protocol.types.call import Call
from protocol.types.bank import BankState
from protocol.types.token import TokenState
from protocol.types.common import ProtocolError, ValidationError
from protocol.types.uint import checked_add, checked_mul, require_uint
from protocol.crypto.keys import verify
from protocol.crypto.hash import sha256_hex, canonical_json, merkle_root
from protocol.crypto.addresses import address_from_pubkey, contract_address
from protocol.config.params import CURRENT_NETWORK, NetworkConfig
from protocol.config.genesis import GenesisConfig
from ..storage.db import StorageDB
from ..observability.metrics import record_block, record_call, record_reward
from .clock import BlockClock
from .context import ExecutionContext
from .contract import Contract
from .events import EventBus
from .receipts import CallReceipt, CallReceiptStore
from .token import TokenLedger
from .bank import TinyBank
from .quorum import validate_managers

logger = logging.getLogger(__name__)


class Chain:
    """
    Automining chain hosting the token ledger and the bank.

    Every successful call (or deployment) is mined into its own block, so the
    block number advances by exactly one per accepted call. A call that
    reverts leaves state, nonces and height untouched.
    """

    def __init__(self, db_path: str = ":memory:", config: NetworkConfig = CURRENT_NETWORK,
                 event_bus: Optional[EventBus] = None):
        self.config = config
        self.db = StorageDB(db_path)
        self._lock = threading.RLock()
        self.receipts = CallReceiptStore(config.max_receipts)

        self.contracts: Dict[str, Contract] = {}
        self.nonces: Dict[str, int] = {}
        self.token_address: Optional[str] = None
        self.bank_address: Optional[str] = None

        last = self.db.get_last_block()
        height = last[0] if last else 0
        self.ctx = ExecutionContext(clock=BlockClock(height), bus=event_bus)
        self._load_chain_state(last)

    def _load_chain_state(self, last):
        if last:
            _, self.last_hash, _ = last
            self._load_contracts()
            self.nonces = {key[len("nonce:"):]: int(value)
                           for key, value in self.db.get_state_by_prefix("nonce:").items()}
            defaults = self.db.get_state("defaults")
            if defaults:
                data = json.loads(defaults)
                self.token_address = data.get("token")
                self.bank_address = data.get("bank")
            logger.info(f"Chain initialized at height {self.height} with {len(self.contracts)} contracts")
        else:
            self.last_hash = "0" * 64
            genesis = Block(header=BlockHeader(
                height=0,
                prev_hash=self.last_hash,
                timestamp=int(time.time()),
                chain_id=self.config.chain_id,
                call_root="",
                state_root=self.state_root(),
            ))
            self.db.commit_block(0, genesis.hash(), genesis.model_dump_json(), {})
            self.last_hash = genesis.hash()
            logger.info(f"Chain {self.config.chain_id} initialized empty (genesis {self.last_hash[:8]}...)")

    def _load_contracts(self):
        stored = {}
        for key, value in self.db.get_state_by_prefix("contract:").items():
            stored[key[len("contract:"):]] = json.loads(value)

        # Banks reference their token, so tokens are loaded first
        for address, data in stored.items():
            if data["kind"] == TokenLedger.KIND:
                self.contracts[address] = TokenLedger(self.ctx, TokenState.model_validate(data["state"]))
        for address, data in stored.items():
            if data["kind"] == TinyBank.KIND:
                state = BankState.model_validate(data["state"])
                token = self.contracts.get(state.token)
                if not isinstance(token, TokenLedger):
                    raise ValueError(f"Bank {address} references missing token {state.token}")
                self.contracts[address] = TinyBank(self.ctx, state, token)

    # --- Chain info ---
    @property
    def height(self) -> int:
        return self.ctx.clock.height

    @property
    def events(self) -> EventBus:
        return self.ctx.bus

    def nonce(self, address: str) -> int:
        return self.nonces.get(address, 0)

    def get_block(self, height: int) -> Optional[Block]:
        data = self.db.get_block_by_height(height)
        if data:
            return Block.model_validate_json(data)
        return None

    def state_root(self) -> str:
        """Merkle root over every contract's state hash, ordered by address."""
        leaves = [self.contracts[address].state_hash() for address in sorted(self.contracts)]
        return merkle_root(leaves).hex()

    def token(self, address: Optional[str] = None) -> TokenLedger:
        return self._get_contract(address or self.token_address, TokenLedger)

    def bank(self, address: Optional[str] = None) -> TinyBank:
        return self._get_contract(address or self.bank_address, TinyBank)

    def _get_contract(self, address: Optional[str], kind: type):
        if address is None:
            raise ValidationError(f"No {kind.KIND} contract deployed")
        contract = self.contracts.get(address)
        if not isinstance(contract, kind):
            raise ValidationError(f"Unknown {kind.KIND} contract {address}")
        return contract

    # --- Deployment ---
    def deploy_token(self, deployer: str, name: Optional[str] = None, symbol: Optional[str] = None,
                     decimals: Optional[int] = None, initial_mint: Optional[int] = None) -> TokenLedger:
        """Deploys a token ledger owned by `deployer`. Unset parameters come from the network config."""
        args = {
            "name": name if name is not None else self.config.token_name,
            "symbol": symbol if symbol is not None else self.config.token_symbol,
            "decimals": decimals if decimals is not None else self.config.token_decimals,
            "initial_mint": initial_mint if initial_mint is not None else self.config.initial_mint,
        }
        with self._lock:
            address = contract_address(deployer, self.nonce(deployer), self.config.bech32_prefix_contract)

            def create():
                token = TokenLedger.deploy(self.ctx, address, deployer, **args)
                self.contracts[address] = token
                if self.token_address is None:
                    self.token_address = address
                return address

            self._mine(deployer, address, "deploy_token", args, self._call_hash(deployer, address, "deploy_token", args), create)
            return self.contracts[address]

    def deploy_bank(self, deployer: str, token_address: str, managers, reward_per_block: Optional[int] = None) -> TinyBank:
        """
        Deploys a bank over an existing token.

        The bank cannot pay rewards until the token owner hands it the minter
        slot with set_manager.
        """
        args = {"token": token_address, "managers": list(managers), "reward_per_block": reward_per_block}
        with self._lock:
            token = self.token(token_address)
            address = contract_address(deployer, self.nonce(deployer), self.config.bech32_prefix_contract)

            def create():
                bank = TinyBank.deploy(self.ctx, address, token, args["managers"], reward_per_block)
                self.contracts[address] = bank
                if self.bank_address is None:
                    self.bank_address = address
                return address

            self._mine(deployer, address, "deploy_bank", args, self._call_hash(deployer, address, "deploy_bank", args), create)
            return self.contracts[address]

    def apply_genesis(self, genesis: GenesisConfig):
        """Deploys the genesis token and bank, makes the bank the minter and pays out allocations."""
        if genesis.chain_id != self.config.chain_id:
            raise ValueError(f"Genesis chain_id {genesis.chain_id} does not match {self.config.chain_id}")

        with self._lock:
            if self.token_address is not None or self.bank_address is not None:
                raise RuntimeError("Genesis already applied")
            self._check_genesis(genesis)

            token = self.deploy_token(
                genesis.deployer,
                name=genesis.token.name,
                symbol=genesis.token.symbol,
                decimals=genesis.token.decimals,
                initial_mint=genesis.token.initial_mint,
            )
            bank = self.deploy_bank(genesis.deployer, token.address, genesis.managers, genesis.reward_per_block)
            self.transact(genesis.deployer, token.address, "set_manager", manager=bank.address)

            for address, amount in genesis.alloc.items():
                self.transact(genesis.deployer, token.address, "transfer", amount=int(amount), to=address)

            logger.info(f"Applied genesis: token {token.address}, bank {bank.address}, "
                        f"{len(genesis.managers)} managers, {len(genesis.alloc)} allocations")
            return token, bank

    @staticmethod
    def _check_genesis(genesis: GenesisConfig):
        """
        Rejects a genesis that would fail part way through.

        Each genesis step is mined and persisted on its own, so everything
        that can revert is checked before the first deploy.
        """
        decimals = require_uint(genesis.token.decimals, "decimals")
        supply = checked_mul(require_uint(genesis.token.initial_mint, "initial_mint"), 10**decimals)
        validate_managers(genesis.managers)
        if genesis.reward_per_block is not None:
            require_uint(genesis.reward_per_block, "reward_per_block")

        allocated = 0
        for address, amount in genesis.alloc.items():
            if not address:
                raise ValidationError("Genesis allocation has an empty address")
            allocated = checked_add(allocated, require_uint(amount, f"alloc[{address}]"))
        if allocated > supply:
            raise ValidationError(f"Genesis allocations total {allocated} but the initial mint is {supply}")

    # --- Execution ---
    def transact(self, sender: str, target: str, method: str, **args: Any) -> CallReceipt:
        """
        Runs one entrypoint as `sender` and mines it.

        Trusted path: no signature check. Raises the contract's error if the
        call reverts.
        """
        with self._lock:
            call_hash = self._call_hash(sender, target, method, args)
            run = self._target(target).entrypoint(method, sender, args)
            return self._mine(sender, target, method, args, call_hash, run)

    def execute(self, call: Call) -> CallReceipt:
        """
        Verifies and runs a signed call.

        Calls that fail verification or carry malformed arguments are rejected
        with ValidationError and never get a receipt. Calls that revert get a
        failed receipt.
        """
        with self._lock:
            self._verify_call(call)
            call_hash = call.hash()
            method = call.call_type.value
            run = self._target(call.target).entrypoint(method, call.sender, call.args)
            try:
                return self._mine(call.sender, call.target, method, call.args, call_hash, run)
            except ValidationError:
                raise
            except ProtocolError:
                return self.receipts.get(call_hash)

    def mine(self, blocks: int = 1) -> int:
        """Mines empty blocks. Returns the new height."""
        if blocks < 1:
            raise ValueError(f"Block count must be positive: {blocks}")
        with self._lock:
            for _ in range(blocks):
                with self.ctx.clock.open_block() as height:
                    self._seal(height, "", "", "", {}, "")
        return self.height

    def _verify_call(self, call: Call):
        if not call.pub_key or not call.signature:
            raise ValidationError("Call is not signed")
        try:
            pub_key = bytes.fromhex(call.pub_key)
            signature = bytes.fromhex(call.signature)
        except ValueError:
            raise ValidationError("Malformed public key or signature")

        if address_from_pubkey(pub_key, self.config.bech32_prefix_acc) != call.sender:
            raise ValidationError("Public key does not match sender address")
        if not verify(bytes.fromhex(call.hash()), signature, pub_key):
            raise ValidationError("Invalid signature")

        expected = self.nonce(call.sender)
        if call.nonce != expected:
            raise ValidationError(f"Invalid nonce: expected {expected}, got {call.nonce}")

    def _target(self, address: str) -> Contract:
        contract = self.contracts.get(address)
        if contract is None:
            raise ValidationError(f"Unknown contract {address}")
        return contract

    def _call_hash(self, sender: str, target: str, method: str, args: Dict[str, Any]) -> str:
        return sha256_hex(canonical_json({
            "sender": sender,
            "target": target,
            "method": method,
            "args": args,
            "nonce": self.nonce(sender),
        }))

    def _mine(self, sender: str, target: str, method: str, args: Dict[str, Any], call_hash: str,
              action: Callable[[], Any]) -> CallReceipt:
        """Runs `action` inside a fresh block. Nothing is kept, not even the block, if it raises."""
        self.receipts.add_pending(call_hash)
        contracts = dict(self.contracts)
        defaults = (self.token_address, self.bank_address)
        nonce = self.nonce(sender) + 1

        try:
            with self.ctx.clock.open_block() as height:
                with self.ctx.atomic():
                    result = action()
                    block = self._seal(height, sender, target, method, args, call_hash, nonce)
        except ValidationError as e:
            self._discard(contracts, defaults)
            self.receipts.discard(call_hash)
            logger.warning(f"Call {call_hash[:16]}... {method} from {sender} rejected: {e}")
            raise
        except ProtocolError as e:
            self._discard(contracts, defaults)
            self.receipts.mark_failed(call_hash, str(e))
            record_call(method, "failed")
            logger.warning(f"Call {call_hash[:16]}... {method} from {sender} reverted: {e}")
            raise
        except Exception:
            self._discard(contracts, defaults)
            raise

        self.nonces[sender] = nonce
        record_call(method, "confirmed")
        if method == "withdraw":
            record_reward(result)
        return self.receipts.mark_confirmed(call_hash, block.header.height, block.events, result)

    def _discard(self, contracts: Dict[str, Contract], defaults):
        self.contracts = contracts
        self.token_address, self.bank_address = defaults

    def _seal(self, height: int, sender: str, target: str, method: str, args: Dict[str, Any],
              call_hash: str, nonce: Optional[int] = None) -> Block:
        """Builds the block for the open height and persists it with the resulting state."""
        block = Block(
            header=BlockHeader(
                height=height,
                prev_hash=self.last_hash,
                timestamp=int(time.time()),
                chain_id=self.config.chain_id,
                call_root=call_hash,
                state_root=self.state_root(),
            ),
            sender=sender,
            target=target,
            method=method,
            args=args,
            events=[event.to_dict() for event in self.ctx.journal.pending()],
        )

        states = {
            f"contract:{address}": json.dumps({"kind": contract.KIND, "state": contract.state.model_dump(mode="json")})
            for address, contract in self.contracts.items()
        }
        states["defaults"] = json.dumps({"token": self.token_address, "bank": self.bank_address})
        if nonce is not None:
            states[f"nonce:{sender}"] = str(nonce)

        block_hash = block.hash()
        self.db.commit_block(height, block_hash, block.model_dump_json(), states)
        self.last_hash = block_hash
        record_block(height)

        if method:
            logger.info(f"Block {height} mined: {method} on {target[:16]}... Hash: {block_hash[:8]}...")
        else:
            logger.debug(f"Block {height} mined (empty). Hash: {block_hash[:8]}...")
        return block
