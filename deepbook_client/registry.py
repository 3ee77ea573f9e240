"""
DeepBook Client - Coin and Pool Registries.

============================================================
PURPOSE
============================================================
Read-only lookup of coin and pool metadata.

SNAPSHOT SEMANTICS:
- Each registry holds one immutable mapping.
- refresh() builds a complete new mapping and swaps the reference
  in a single assignment. A reader sees either the old or the new
  snapshot, never a mix.

============================================================
"""

import asyncio
import logging
from dataclasses import replace
from types import MappingProxyType
from typing import TYPE_CHECKING, Dict, Iterable, List, Mapping, Optional

from .errors import InvalidConfig, UnknownCoin, UnknownPool
from .types import CoinMetadata, PoolHandle, PoolMetadata

if TYPE_CHECKING:
    from .gateway.base import ChainGateway


logger = logging.getLogger(__name__)


# ============================================================
# COIN REGISTRY
# ============================================================

class CoinRegistry:
    """Maps coin symbols to their type and precision."""

    def __init__(self, coins: Mapping[str, CoinMetadata]):
        self._snapshot: Mapping[str, CoinMetadata] = MappingProxyType(dict(coins))
        self._by_type: Mapping[str, CoinMetadata] = MappingProxyType(
            {coin.coin_type: coin for coin in coins.values()}
        )

    def resolve(self, symbol: str) -> CoinMetadata:
        """
        Resolve a coin by symbol.

        Raises:
            UnknownCoin: If the symbol is not registered
        """
        coin = self._snapshot.get(symbol)
        if coin is None:
            raise UnknownCoin(symbol)
        return coin

    def resolve_type(self, coin_type: str) -> CoinMetadata:
        """Resolve a coin by its Move type."""
        coin = self._by_type.get(coin_type)
        if coin is None:
            raise UnknownCoin(coin_type)
        return coin

    def snapshot(self) -> Mapping[str, CoinMetadata]:
        return self._snapshot

    def __contains__(self, symbol: str) -> bool:
        return symbol in self._snapshot

    def __len__(self) -> int:
        return len(self._snapshot)


# ============================================================
# POOL REGISTRY
# ============================================================

class PoolRegistry:
    """
    Maps pool keys to pool metadata.

    refresh() pulls tick, lot and min sizes from the chain and
    replaces the whole snapshot.
    """

    def __init__(self, pools: Mapping[str, PoolMetadata], coins: CoinRegistry):
        self._coins = coins
        self._check_coins(pools.values())
        self._snapshot: Mapping[str, PoolMetadata] = MappingProxyType(dict(pools))
        self._refresh_lock = asyncio.Lock()
        self._generation = 0

    def _check_coins(self, pools: Iterable[PoolMetadata]) -> None:
        for pool in pools:
            for symbol in (pool.base_coin, pool.quote_coin):
                if symbol not in self._coins:
                    raise InvalidConfig(f"pools.{pool.pool_key}", f"references unknown coin {symbol}")

    @property
    def coins(self) -> CoinRegistry:
        return self._coins

    @property
    def generation(self) -> int:
        """Number of completed refreshes."""
        return self._generation

    def resolve_pool(self, pool_key: str) -> PoolMetadata:
        """
        Resolve a pool by key.

        Raises:
            UnknownPool: If the key is not registered
        """
        pool = self._snapshot.get(pool_key)
        if pool is None:
            raise UnknownPool(pool_key)
        return pool

    def snapshot(self) -> Mapping[str, PoolMetadata]:
        return self._snapshot

    def handle(self, pool: PoolMetadata) -> PoolHandle:
        """Pool id with the Move type arguments of its coins."""
        return PoolHandle(
            pool_id=pool.pool_id,
            base_type=self._coins.resolve(pool.base_coin).coin_type,
            quote_type=self._coins.resolve(pool.quote_coin).coin_type,
        )

    def keys(self) -> List[str]:
        return list(self._snapshot)

    def __contains__(self, pool_key: str) -> bool:
        return pool_key in self._snapshot

    def __len__(self) -> int:
        return len(self._snapshot)

    def replace_snapshot(self, pools: Mapping[str, PoolMetadata]) -> None:
        """Swap in a complete new snapshot."""
        self._check_coins(pools.values())
        self._snapshot = MappingProxyType(dict(pools))
        self._generation += 1

    async def refresh(
        self,
        gateway: "ChainGateway",
        pool_keys: Optional[Iterable[str]] = None,
    ) -> Mapping[str, PoolMetadata]:
        """
        Refresh book parameters from the chain.

        All queries finish before the swap. If any of them fails the
        current snapshot stays in place and the error propagates.

        Args:
            gateway: Chain gateway used for the queries
            pool_keys: Pools to refresh, default all

        Returns:
            The new snapshot
        """
        async with self._refresh_lock:
            current = self._snapshot
            keys = list(pool_keys) if pool_keys is not None else list(current)
            for key in keys:
                if key not in current:
                    raise UnknownPool(key)

            params = await asyncio.gather(
                *(gateway.query_pool_params(self.handle(current[key])) for key in keys)
            )

            updated: Dict[str, PoolMetadata] = dict(current)
            for key, (tick_size, lot_size, min_size) in zip(keys, params):
                updated[key] = replace(
                    current[key],
                    tick_size=tick_size,
                    lot_size=lot_size,
                    min_size=min_size,
                )

            self.replace_snapshot(updated)
            logger.info(f"Pool registry refreshed: {len(keys)} pools (generation {self._generation})")
            return self._snapshot
