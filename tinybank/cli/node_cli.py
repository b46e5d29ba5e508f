# MIT License
# Copyright (c) 2025 Hashborn

import argparse
import os
import logging
from protocol.crypto.keys import generate_private_key, public_key_from_private
from protocol.crypto.addresses import address_from_pubkey
from protocol.config.params import NETWORKS, CURRENT_NETWORK, get_network, network_for_chain_id
from protocol.config.genesis import GenesisConfig
from ..core.chain import Chain
from ..rpc.api import start_rpc_server

logger = logging.getLogger(__name__)


def _load_or_create_key(path: str, fixed_hex: str = None) -> bytes:
    if os.path.exists(path):
        with open(path, "r") as f:
            return bytes.fromhex(f.read().strip())

    priv = bytes.fromhex(fixed_hex) if fixed_hex else generate_private_key()
    with open(path, "w") as f:
        f.write(priv.hex())
    os.chmod(path, 0o600)
    return priv


def _address(priv: bytes, prefix: str) -> str:
    return address_from_pubkey(public_key_from_private(priv), prefix)


def cmd_init(args):
    """Initialize node: deployer and manager keys, genesis.json, data dir."""
    network = get_network(args.network)
    data_dir = args.datadir
    os.makedirs(data_dir, exist_ok=True)

    genesis_path = os.path.join(data_dir, "genesis.json")
    if os.path.exists(genesis_path):
        print(f"Genesis already exists at {genesis_path}")
        return

    # Devnet uses a deterministic deployer key
    deployer_priv = _load_or_create_key(os.path.join(data_dir, "deployer_key.hex"), network.deployer_priv_key)
    deployer = _address(deployer_priv, network.bech32_prefix_acc)
    print(f"Deployer: {deployer}")

    managers = []
    for i in range(args.managers):
        priv = _load_or_create_key(os.path.join(data_dir, f"manager_{i}_key.hex"))
        managers.append(_address(priv, network.bech32_prefix_acc))
        print(f"Manager {i}: {managers[-1]}")

    genesis = GenesisConfig.for_network(network, deployer, managers)
    genesis.save(genesis_path)
    print(f"\nNode initialized in {data_dir} (network {network.network_id})")
    print("Key files are stored unencrypted. Import them with 'tinybank-cli keys import'.")


def open_chain(data_dir: str) -> Chain:
    """Opens the node's chain, applying genesis.json on first start. The network follows the genesis chain_id."""
    db_path = os.path.join(data_dir, "chain.db")
    genesis_path = os.path.join(data_dir, "genesis.json")

    genesis = GenesisConfig.load(genesis_path) if os.path.exists(genesis_path) else None
    network = network_for_chain_id(genesis.chain_id) if genesis else CURRENT_NETWORK
    logger.info(f"Data DB: {db_path} (network {network.network_id})")

    chain = Chain(db_path, config=network)
    if chain.bank_address is None:
        if genesis is None:
            chain.db.close()
            logger.error(f"No genesis.json in {data_dir}. Run 'init' first.")
            raise SystemExit(1)
        try:
            token, bank = chain.apply_genesis(genesis)
        except Exception:
            chain.db.close()
            raise
        print(f"Token: {token.address}")
        print(f"Bank:  {bank.address}")
    return chain


def cmd_run(args):
    print(f"Starting TinyBank node...")
    print(f"RPC: {args.host}:{args.port}")

    chain = open_chain(args.datadir)

    try:
        start_rpc_server(chain, host=args.host, port=args.port)
    except KeyboardInterrupt:
        pass
    finally:
        chain.db.close()


def main():
    parser = argparse.ArgumentParser(description="TinyBank Node CLI")
    parser.add_argument("--datadir", default="./.tinybank", help="Data directory")

    subparsers = parser.add_subparsers(dest="command", required=True)

    # Init command
    init_parser = subparsers.add_parser("init", help="Initialize node keys and genesis")
    init_parser.add_argument("--network", default=CURRENT_NETWORK.network_id, choices=sorted(NETWORKS),
                             help="Network parameters to write into genesis")
    init_parser.add_argument("--managers", type=int, default=5, help="Number of bank managers")

    # Run command
    run_parser = subparsers.add_parser("run", help="Run the node")
    run_parser.add_argument("--host", default="0.0.0.0", help="RPC Host")
    run_parser.add_argument("--port", type=int, default=8000, help="RPC Port")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s %(levelname)s: %(message)s',
        datefmt='%H:%M:%S'
    )

    if args.command == "init":
        if args.managers < 1:
            parser.error("--managers must be at least 1")
        cmd_init(args)
    elif args.command == "run":
        cmd_run(args)

if __name__ == "__main__":
    main()
