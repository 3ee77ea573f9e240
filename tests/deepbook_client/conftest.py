"""
Shared fixtures for DeepBook client tests.

The SUI_DBUSDC pool is overridden to a tick size of 10_000 chain
price units, which is 0.01 DBUSDC per SUI.
"""

from dataclasses import replace
from typing import Dict

import pytest

from deepbook_client import (
    BalanceManagerConfig,
    CoinRegistry,
    DeepbookConfig,
    DeepbookClient,
    MockChainGateway,
    MockConfig,
    PoolRegistry,
)
from deepbook_client.constants import TESTNET_COINS, TESTNET_POOLS


SENDER = "0x" + "a" * 64
OTHER_ADDRESS = "0x" + "b" * 64

SUI_TYPE = TESTNET_COINS["SUI"].coin_type
DBUSDC_TYPE = TESTNET_COINS["DBUSDC"].coin_type
DEEP_TYPE = TESTNET_COINS["DEEP"].coin_type

SUI_DBUSDC = replace(TESTNET_POOLS["SUI_DBUSDC"], tick_size=10_000)

WALLET = {
    SUI_TYPE: 1_000 * 10 ** 9,
    DBUSDC_TYPE: 1_000_000 * 10 ** 6,
    DEEP_TYPE: 1_000_000 * 10 ** 6,
}


def make_config(manager_ids: Dict[str, str], **overrides) -> DeepbookConfig:
    return DeepbookConfig.for_testing(
        address=SENDER,
        pools={"SUI_DBUSDC": SUI_DBUSDC},
        balance_managers={
            name: BalanceManagerConfig(address=object_id)
            for name, object_id in manager_ids.items()
        },
        **overrides,
    )


@pytest.fixture
def coins() -> CoinRegistry:
    return CoinRegistry(TESTNET_COINS)


@pytest.fixture
def pools(coins) -> PoolRegistry:
    return PoolRegistry({**TESTNET_POOLS, "SUI_DBUSDC": SUI_DBUSDC}, coins)


@pytest.fixture
def gateway(pools) -> MockChainGateway:
    """Mock chain with every testnet pool and a funded wallet."""
    gw = MockChainGateway(MockConfig(sender=SENDER, deep_type=DEEP_TYPE))
    for pool in pools.snapshot().values():
        gw.register_pool(pools.handle(pool), pool.tick_size, pool.lot_size, pool.min_size)
    for coin_type, amount in WALLET.items():
        gw.set_wallet_balance(coin_type, amount)
    return gw


@pytest.fixture
def manager_ids(gateway) -> Dict[str, str]:
    return {
        "M1": gateway.register_manager(version=5),
        "M2": gateway.register_manager(version=9),
    }


@pytest.fixture
def config(manager_ids) -> DeepbookConfig:
    return make_config(manager_ids)


@pytest.fixture
def client(config, gateway) -> DeepbookClient:
    return DeepbookClient(config, gateway)
