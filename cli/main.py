# MIT License
# Copyright (c) 2025 Hashborn

import argparse
import sys
import json
import os
from decimal import Decimal, InvalidOperation, localcontext
import requests
from .keystore import KeyStore
from protocol.types.call import Call
from protocol.types.common import CallType

DEFAULT_NODE = "http://localhost:8000"

def get_node_url(args):
    return args.node or os.environ.get("TINYBANK_NODE", DEFAULT_NODE)

def to_units(amount: str, decimals: int) -> int:
    """Converts a decimal token amount ("1.5") to minimal units."""
    with localcontext() as ctx:
        ctx.prec = 100
        try:
            value = Decimal(amount) * (Decimal(10) ** decimals)
        except InvalidOperation:
            raise ValueError(f"Invalid amount: {amount}")
    if not value.is_finite() or value < 0 or value != value.to_integral_value():
        raise ValueError(f"Amount {amount} is negative or has more than {decimals} decimals")
    return int(value)

def from_units(units, decimals: int) -> str:
    with localcontext() as ctx:
        ctx.prec = 100
        return str(Decimal(int(units)) / (Decimal(10) ** decimals))

def node_get(url: str, path: str) -> dict:
    try:
        resp = requests.get(f"{url}{path}")
    except requests.RequestException as e:
        print(f"Connection error: {e}")
        sys.exit(1)
    if resp.status_code != 200:
        print(f"Error: {resp.text}")
        sys.exit(1)
    return resp.json()

# --- Keys Commands ---
def cmd_keys_add(args):
    ks = KeyStore()
    try:
        key = ks.create_key(args.name)
    except ValueError as e:
        print(f"Error: {e}")
        sys.exit(1)
    print(f"Key '{args.name}' created.")
    print(f"Address: {key['address']}")
    print(f"Pubkey:  {key['public_key']}")
    print("Important: Private key saved unencrypted. Do not share!")

def cmd_keys_import(args):
    ks = KeyStore()
    try:
        key = ks.import_key(args.name, args.private_key)
    except ValueError as e:
        print(f"Error: {e}")
        sys.exit(1)
    print(f"Key '{args.name}' imported.")
    print(f"Address: {key['address']}")

def cmd_keys_list(args):
    ks = KeyStore()
    keys = ks.list_keys()
    if not keys:
        print("No keys found.")
        return

    print(f"{'Name':<15} {'Address':<45}")
    print("-" * 60)
    for k in keys:
        print(f"{k['name']:<15} {k['address']:<45}")

def cmd_keys_show(args):
    ks = KeyStore()
    key = ks.get_key(args.name)
    if not key:
        print(f"Key '{args.name}' not found.")
        sys.exit(1)
    print(json.dumps({k: v for k, v in key.items() if k != 'private_key'}, indent=2))

# --- Query Commands ---
def cmd_query_status(args):
    print(json.dumps(node_get(get_node_url(args), "/status"), indent=2))

def cmd_query_account(args):
    url = get_node_url(args)
    token = node_get(url, "/token")
    data = node_get(url, f"/account/{args.address}")
    decimals, symbol = token['decimals'], token['symbol']
    print(f"Balance:        {from_units(data['balance'], decimals)} {symbol}")
    print(f"Staked:         {from_units(data['staked'], decimals)} {symbol}")
    print(f"Pending reward: {from_units(data['pending_reward'], decimals)} {symbol}")
    print(f"Checkpoint:     {data['checkpoint_block']}")
    print(f"Nonce:          {data['nonce']}")

def cmd_query_bank(args):
    url = get_node_url(args)
    token = node_get(url, "/token")
    data = node_get(url, "/bank")
    decimals, symbol = token['decimals'], token['symbol']
    print(f"Bank:             {data['address']}")
    print(f"Token:            {data['token']} ({symbol})")
    print(f"Total staked:     {from_units(data['total_staked'], decimals)} {symbol}")
    print(f"Reward per block: {from_units(data['reward_per_block'], decimals)} {symbol}")
    print(f"Quorum:           {data['quorum_status']} ({len(data['confirmations'])}/{len(data['managers'])})")
    for i, manager in enumerate(data['managers']):
        mark = "x" if manager in data['confirmations'] else " "
        print(f"  [{mark}] {i}: {manager}")

def cmd_query_token(args):
    print(json.dumps(node_get(get_node_url(args), "/token"), indent=2))

def cmd_query_block(args):
    print(json.dumps(node_get(get_node_url(args), f"/block/{args.height}"), indent=2))

def cmd_query_receipt(args):
    print(json.dumps(node_get(get_node_url(args), f"/call/{args.call_hash}/receipt"), indent=2))

# --- Tx Commands ---
def load_sender(name: str) -> dict:
    key = KeyStore().get_key(name)
    if not key:
        print(f"Key '{name}' not found.")
        sys.exit(1)
    return key

def send_call(url: str, key: dict, call_type: CallType, target: str, call_args: dict):
    """Builds, signs and broadcasts one call. Exits non-zero if it is rejected or reverts."""
    nonce = node_get(url, f"/account/{key['address']}")['nonce']
    call = Call(
        call_type=call_type,
        sender=key['address'],
        target=target,
        args=call_args,
        nonce=nonce,
        pub_key=key['public_key'],
    )
    call.sign(bytes.fromhex(key['private_key']))

    try:
        resp = requests.post(f"{url}/call/send", json=call.model_dump(mode="json"))
    except requests.RequestException as e:
        print(f"Connection error: {e}")
        sys.exit(1)
    if resp.status_code != 200:
        print(f"Error broadcasting: {resp.text}")
        sys.exit(1)

    receipt = resp.json()
    if receipt['status'] != 'confirmed':
        print(f"Reverted: {receipt['error']} (CallHash: {receipt['call_hash']})")
        sys.exit(1)
    print(f"Success! CallHash: {receipt['call_hash']} (block {receipt['block_height']})")
    return receipt

def _targets(url: str):
    status = node_get(url, "/status")
    token = node_get(url, "/token")
    return status['token'], status['bank'], token['decimals']

def _units(amount: str, decimals: int) -> int:
    try:
        return to_units(amount, decimals)
    except ValueError as e:
        print(f"Error: {e}")
        sys.exit(1)

def cmd_tx_transfer(args):
    url = get_node_url(args)
    key = load_sender(args.from_name)
    token, _, decimals = _targets(url)
    print(f"Transferring {args.amount} to {args.to_address}...")
    send_call(url, key, CallType.TRANSFER, token,
              {"amount": _units(args.amount, decimals), "to": args.to_address})

def cmd_tx_approve(args):
    url = get_node_url(args)
    key = load_sender(args.from_name)
    token, bank, decimals = _targets(url)
    spender = args.spender or bank
    send_call(url, key, CallType.APPROVE, token,
              {"spender": spender, "amount": _units(args.amount, decimals)})

def cmd_tx_stake(args):
    url = get_node_url(args)
    key = load_sender(args.from_name)
    token, bank, decimals = _targets(url)
    amount = _units(args.amount, decimals)
    if args.approve:
        send_call(url, key, CallType.APPROVE, token, {"spender": bank, "amount": amount})
    print(f"Staking {args.amount}...")
    send_call(url, key, CallType.STAKE, bank, {"amount": amount})

def cmd_tx_withdraw(args):
    url = get_node_url(args)
    key = load_sender(args.from_name)
    _, bank, decimals = _targets(url)
    receipt = send_call(url, key, CallType.WITHDRAW, bank, {"amount": _units(args.amount, decimals)})
    print(f"Reward paid: {from_units(receipt['result'], decimals)}")

def cmd_tx_confirm(args):
    url = get_node_url(args)
    key = load_sender(args.from_name)
    _, bank, _ = _targets(url)
    receipt = send_call(url, key, CallType.CONFIRM, bank, {})
    if not receipt['result']:
        print("Already confirmed.")

def cmd_tx_set_reward(args):
    url = get_node_url(args)
    key = load_sender(args.from_name)
    _, bank, decimals = _targets(url)
    send_call(url, key, CallType.SET_REWARD_PER_BLOCK, bank, {"new_rate": _units(args.rate, decimals)})

def cmd_tx_mint(args):
    url = get_node_url(args)
    key = load_sender(args.from_name)
    token, _, decimals = _targets(url)
    send_call(url, key, CallType.MINT, token,
              {"amount": _units(args.amount, decimals), "to": args.to_address})

def cmd_tx_set_manager(args):
    url = get_node_url(args)
    key = load_sender(args.from_name)
    token, _, _ = _targets(url)
    send_call(url, key, CallType.SET_MANAGER, token, {"manager": args.manager})

def build_parser():
    parser = argparse.ArgumentParser(prog="tinybank-cli", description="TinyBank Client CLI")
    parser.add_argument("--node", help="Node URL (default: http://localhost:8000)")

    subparsers = parser.add_subparsers(dest="command", help="Sub-commands")

    # keys
    p_keys = subparsers.add_parser("keys", help="Manage keys")
    sp_keys = p_keys.add_subparsers(dest="subcommand")

    pk_add = sp_keys.add_parser("add", help="Create new key")
    pk_add.add_argument("name", help="Key name")
    pk_add.set_defaults(func=cmd_keys_add)

    pk_imp = sp_keys.add_parser("import", help="Import private key")
    pk_imp.add_argument("name", help="Key name")
    pk_imp.add_argument("--private-key", required=True, help="Hex private key")
    pk_imp.set_defaults(func=cmd_keys_import)

    pk_list = sp_keys.add_parser("list", help="List keys")
    pk_list.set_defaults(func=cmd_keys_list)

    pk_show = sp_keys.add_parser("show", help="Show key details")
    pk_show.add_argument("name", help="Key name")
    pk_show.set_defaults(func=cmd_keys_show)

    # query
    p_query = subparsers.add_parser("query", help="Query chain state")
    sp_query = p_query.add_subparsers(dest="subcommand")

    sp_query.add_parser("status", help="Node status").set_defaults(func=cmd_query_status)

    pq_acc = sp_query.add_parser("account", help="Balance, stake and pending reward")
    pq_acc.add_argument("address", help="Account address")
    pq_acc.set_defaults(func=cmd_query_account)

    sp_query.add_parser("bank", help="Bank totals, rate and quorum").set_defaults(func=cmd_query_bank)
    sp_query.add_parser("token", help="Token metadata").set_defaults(func=cmd_query_token)

    pq_block = sp_query.add_parser("block", help="Get block by height")
    pq_block.add_argument("height", type=int, help="Block height")
    pq_block.set_defaults(func=cmd_query_block)

    pq_rcpt = sp_query.add_parser("receipt", help="Get call receipt")
    pq_rcpt.add_argument("call_hash", help="Call hash")
    pq_rcpt.set_defaults(func=cmd_query_receipt)

    # tx
    p_tx = subparsers.add_parser("tx", help="Create and send calls")
    sp_tx = p_tx.add_subparsers(dest="subcommand")

    pt_transfer = sp_tx.add_parser("transfer", help="Send tokens")
    pt_transfer.add_argument("to_address", help="Recipient address")
    pt_transfer.add_argument("amount", help="Amount in whole tokens")
    pt_transfer.set_defaults(func=cmd_tx_transfer)

    pt_approve = sp_tx.add_parser("approve", help="Set a spender's allowance")
    pt_approve.add_argument("amount", help="Allowance in whole tokens")
    pt_approve.add_argument("--spender", help="Spender address (default: the bank)")
    pt_approve.set_defaults(func=cmd_tx_approve)

    pt_stake = sp_tx.add_parser("stake", help="Stake tokens in the bank")
    pt_stake.add_argument("amount", help="Amount in whole tokens")
    pt_stake.add_argument("--approve", action="store_true", help="Approve the bank for the amount first")
    pt_stake.set_defaults(func=cmd_tx_stake)

    pt_withdraw = sp_tx.add_parser("withdraw", help="Withdraw stake and collect the reward")
    pt_withdraw.add_argument("amount", help="Amount in whole tokens")
    pt_withdraw.set_defaults(func=cmd_tx_withdraw)

    pt_confirm = sp_tx.add_parser("confirm", help="Confirm the pending reward rate change (managers)")
    pt_confirm.set_defaults(func=cmd_tx_confirm)

    pt_rate = sp_tx.add_parser("set-reward", help="Apply a new reward per block once all managers confirmed")
    pt_rate.add_argument("rate", help="Reward per block in whole tokens")
    pt_rate.set_defaults(func=cmd_tx_set_reward)

    pt_mint = sp_tx.add_parser("mint", help="Mint tokens (minter only)")
    pt_mint.add_argument("to_address", help="Recipient address")
    pt_mint.add_argument("amount", help="Amount in whole tokens")
    pt_mint.set_defaults(func=cmd_tx_mint)

    pt_mgr = sp_tx.add_parser("set-manager", help="Hand the minter slot to an address (token owner only)")
    pt_mgr.add_argument("manager", help="New minter address")
    pt_mgr.set_defaults(func=cmd_tx_set_manager)

    for p in (pt_transfer, pt_approve, pt_stake, pt_withdraw, pt_confirm, pt_rate, pt_mint, pt_mgr):
        p.add_argument("--from", dest="from_name", required=True, help="Sender key name")

    return parser, {"keys": p_keys, "query": p_query, "tx": p_tx}

def main(argv=None):
    parser, groups = build_parser()
    args = parser.parse_args(argv)

    if hasattr(args, "func"):
        args.func(args)
    elif args.command in groups:
        groups[args.command].print_help()
    else:
        parser.print_help()

if __name__ == "__main__":
    main()
