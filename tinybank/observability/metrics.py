# MIT License
# Copyright (c) 2025 Hashborn

"""
Prometheus Metrics Exporter

Exports chain and bank metrics in Prometheus format.

Metrics:
- Block height, blocks mined
- Calls by method and outcome
- Bank: total staked, reward per block, quorum confirmations, rewards paid
- Token: total supply
"""

from prometheus_client import Counter, Gauge, CollectorRegistry

# Create registry for metrics
metrics_registry = CollectorRegistry()

# ═══════════════════════════════════════════════════════════════════
# CHAIN METRICS
# ═══════════════════════════════════════════════════════════════════

block_height = Gauge(
    'tinybank_block_height',
    'Current block height',
    registry=metrics_registry
)

blocks_total = Counter(
    'tinybank_blocks_total',
    'Total number of blocks mined',
    registry=metrics_registry
)

calls_total = Counter(
    'tinybank_calls_total',
    'Contract calls by method and outcome',
    ['method', 'status'],
    registry=metrics_registry
)

# ═══════════════════════════════════════════════════════════════════
# BANK METRICS
# ═══════════════════════════════════════════════════════════════════

total_staked = Gauge(
    'tinybank_total_staked',
    'Total principal held in bank custody',
    ['bank'],
    registry=metrics_registry
)

reward_per_block = Gauge(
    'tinybank_reward_per_block',
    'Current reward per elapsed block',
    ['bank'],
    registry=metrics_registry
)

quorum_confirmations = Gauge(
    'tinybank_quorum_confirmations',
    'Managers that confirmed the pending reward rate change',
    ['bank'],
    registry=metrics_registry
)

rewards_paid_total = Counter(
    'tinybank_rewards_paid_total',
    'Total staking rewards minted to stakers',
    registry=metrics_registry
)

# ═══════════════════════════════════════════════════════════════════
# TOKEN METRICS
# ═══════════════════════════════════════════════════════════════════

token_total_supply = Gauge(
    'tinybank_token_total_supply',
    'Token total supply',
    ['token'],
    registry=metrics_registry
)


# ═══════════════════════════════════════════════════════════════════
# HELPER FUNCTIONS
# ═══════════════════════════════════════════════════════════════════

def record_call(method: str, status: str):
    calls_total.labels(method=method, status=status).inc()


def record_block(height: int):
    blocks_total.inc()
    block_height.set(height)


def record_reward(amount: int):
    if amount > 0:
        rewards_paid_total.inc(amount)


def update_metrics(chain):
    """
    Refresh gauges from chain state. Called when metrics are scraped.

    Args:
        chain: Chain instance
    """
    if chain is None:
        return

    block_height.set(chain.height)

    for contract in chain.contracts.values():
        if contract.KIND == "bank":
            total_staked.labels(bank=contract.address).set(contract.total_staked())
            reward_per_block.labels(bank=contract.address).set(contract.reward_per_block())
            quorum_confirmations.labels(bank=contract.address).set(len(contract.confirmations()))
        elif contract.KIND == "token":
            token_total_supply.labels(token=contract.address).set(contract.total_supply())
