# MIT License
# Copyright (c) 2025 Hashborn

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from typing import Optional
from protocol.types.call import Call
from protocol.types.common import ValidationError
from ..core.chain import Chain
from ..observability.metrics import metrics_registry, update_metrics
import logging

logger = logging.getLogger(__name__)

app = FastAPI(title="TinyBank Node RPC")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
chain: Optional[Chain] = None


def _require_chain() -> Chain:
    if not chain:
        raise HTTPException(status_code=503, detail="Node not initialized")
    return chain


@app.get("/status")
async def get_status():
    c = _require_chain()
    return {
        "height": c.height,
        "last_hash": c.last_hash,
        "network": c.config.network_id,
        "chain_id": c.config.chain_id,
        "token": c.token_address,
        "bank": c.bank_address,
    }


@app.get("/block/{height}")
async def get_block(height: int):
    c = _require_chain()
    block = c.get_block(height)
    if not block:
        raise HTTPException(status_code=404, detail="Block not found")
    return block


@app.get("/account/{address}")
async def get_account(address: str):
    """Token balance, nonce and stake of an account. Amounts are decimal strings."""
    c = _require_chain()
    try:
        token = c.token()
        bank = c.bank()
    except ValidationError as e:
        raise HTTPException(status_code=404, detail=str(e))

    return {
        "address": address,
        "nonce": c.nonce(address),
        "balance": str(token.balance_of(address)),
        "staked": str(bank.staked(address)),
        "checkpoint_block": bank.checkpoint_of(address),
        "pending_reward": str(bank.pending_reward(address)),
    }


@app.get("/token")
async def get_token():
    c = _require_chain()
    try:
        token = c.token()
    except ValidationError as e:
        raise HTTPException(status_code=404, detail=str(e))

    return {
        "address": token.address,
        "name": token.name(),
        "symbol": token.symbol(),
        "decimals": token.decimals(),
        "total_supply": str(token.total_supply()),
        "owner": token.owner(),
        "minter": token.minter(),
    }


@app.get("/token/allowance/{owner}/{spender}")
async def get_allowance(owner: str, spender: str):
    c = _require_chain()
    try:
        token = c.token()
    except ValidationError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"owner": owner, "spender": spender, "allowance": str(token.allowance(owner, spender))}


@app.get("/bank")
async def get_bank():
    c = _require_chain()
    try:
        bank = c.bank()
    except ValidationError as e:
        raise HTTPException(status_code=404, detail=str(e))

    return {
        "address": bank.address,
        "token": bank.token.address,
        "total_staked": str(bank.total_staked()),
        "reward_per_block": str(bank.reward_per_block()),
        "managers": list(bank.manager_list()),
        "confirmations": list(bank.confirmations()),
        "quorum_status": bank.quorum_status().value,
        "current_block": c.height,
    }


@app.get("/bank/managers/{index}")
async def get_manager(index: int):
    c = _require_chain()
    try:
        return {"index": index, "manager": c.bank().managers(index)}
    except IndexError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValidationError as e:
        raise HTTPException(status_code=404, detail=str(e))


@app.get("/bank/staked/{address}")
async def get_staked(address: str):
    c = _require_chain()
    try:
        bank = c.bank()
    except ValidationError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {
        "address": address,
        "staked": str(bank.staked(address)),
        "checkpoint_block": bank.checkpoint_of(address),
        "pending_reward": str(bank.pending_reward(address)),
    }


@app.post("/call/send")
async def send_call(call: Call):
    """
    Verifies, runs and mines a signed call.

    Reverted calls still return 200 with status 'failed' and the revert reason.
    """
    c = _require_chain()
    try:
        receipt = c.execute(call)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return receipt.to_dict()


@app.get("/call/{call_hash}/receipt")
async def get_call_receipt(call_hash: str):
    c = _require_chain()
    receipt = c.receipts.get(call_hash)
    if not receipt:
        raise HTTPException(status_code=404, detail="Call not found")

    response = receipt.to_dict()
    confirmations = c.receipts.get_confirmations(call_hash, c.height)
    if confirmations is not None:
        response["confirmations"] = confirmations
    return response


@app.get("/metrics")
async def get_metrics():
    """Prometheus metrics in text format."""
    update_metrics(chain)
    return Response(
        content=generate_latest(metrics_registry),
        media_type=CONTENT_TYPE_LATEST
    )


def start_rpc_server(chain_instance: Chain, host: str = "0.0.0.0", port: int = 8000):
    global chain
    chain = chain_instance
    import uvicorn
    logger.info(f"Starting RPC server on {host}:{port}")
    uvicorn.run(app, host=host, port=port)
