"""
Coin and Pool Registry Tests.

============================================================
PURPOSE
============================================================
Tests for registry lookups and atomic snapshot refresh.

============================================================
"""

import pytest
import asyncio
from unittest.mock import AsyncMock

from deepbook_client import (
    ChainExecutionError,
    InvalidConfig,
    PoolMetadata,
    PoolRegistry,
    UnknownCoin,
    UnknownPool,
)
from deepbook_client.constants import TESTNET_COINS, TESTNET_POOLS


# ============================================================
# COIN REGISTRY TESTS
# ============================================================

class TestCoinRegistry:
    """Tests for CoinRegistry."""

    def test_resolve(self, coins):
        """Test resolving a coin by symbol."""
        coin = coins.resolve("DBUSDC")

        assert coin.decimals == 6
        assert coin.coin_type.endswith("::DBUSDC::DBUSDC")

    def test_resolve_unknown(self, coins):
        """Test that unknown symbols raise UnknownCoin."""
        with pytest.raises(UnknownCoin) as exc_info:
            coins.resolve("NOPE")

        assert exc_info.value.symbol == "NOPE"
        assert not exc_info.value.is_retryable

    def test_resolve_type(self, coins):
        """Test reverse lookup by Move type."""
        sui = TESTNET_COINS["SUI"]

        assert coins.resolve_type(sui.coin_type) is sui

    def test_snapshot_is_read_only(self, coins):
        """Test that the snapshot cannot be mutated."""
        with pytest.raises(TypeError):
            coins.snapshot()["X"] = TESTNET_COINS["SUI"]

    def test_contains(self, coins):
        """Test membership."""
        assert "SUI" in coins
        assert "NOPE" not in coins
        assert len(coins) == len(TESTNET_COINS)


# ============================================================
# POOL REGISTRY TESTS
# ============================================================

class TestPoolRegistry:
    """Tests for PoolRegistry."""

    def test_resolve_pool(self, pools):
        """Test resolving a pool by key."""
        pool = pools.resolve_pool("SUI_DBUSDC")

        assert pool.base_coin == "SUI"
        assert pool.quote_coin == "DBUSDC"
        assert pool.tick_size == 10_000

    def test_resolve_unknown_pool(self, pools):
        """Test that unknown keys raise UnknownPool."""
        with pytest.raises(UnknownPool):
            pools.resolve_pool("SUI_NOPE")

    def test_handle_carries_type_arguments(self, pools):
        """Test that a pool handle carries base and quote types."""
        handle = pools.handle(pools.resolve_pool("SUI_DBUSDC"))

        assert handle.type_arguments == (
            TESTNET_COINS["SUI"].coin_type,
            TESTNET_COINS["DBUSDC"].coin_type,
        )

    def test_pool_with_unknown_coin_rejected(self, coins):
        """Test that pools must reference registered coins."""
        bad = PoolMetadata("FOO_SUI", "0x1", "FOO", "SUI", 1, 1, 1)

        with pytest.raises(InvalidConfig):
            PoolRegistry({"FOO_SUI": bad}, coins)


class TestPoolRefresh:
    """Tests for PoolRegistry.refresh."""

    @pytest.mark.asyncio
    async def test_refresh_replaces_snapshot(self, pools):
        """Test that refresh swaps in chain parameters."""
        gateway = AsyncMock()
        gateway.query_pool_params.return_value = (1_000, 200_000_000, 2_000_000_000)
        before = pools.snapshot()

        after = await pools.refresh(gateway, ["SUI_DBUSDC"])

        assert after["SUI_DBUSDC"].tick_size == 1_000
        assert after["SUI_DBUSDC"].lot_size == 200_000_000
        assert before["SUI_DBUSDC"].tick_size == 10_000
        assert pools.generation == 1

    @pytest.mark.asyncio
    async def test_failed_refresh_keeps_snapshot(self, pools):
        """Test that a failing query leaves the old snapshot in place."""
        gateway = AsyncMock()
        gateway.query_pool_params.side_effect = [
            (1, 1, 1),
            ChainExecutionError("not readable", reason="OBJECT_NOT_FOUND"),
        ]
        before = pools.snapshot()

        with pytest.raises(ChainExecutionError):
            await pools.refresh(gateway, ["SUI_DBUSDC", "DEEP_SUI"])

        assert pools.snapshot() is before
        assert pools.generation == 0

    @pytest.mark.asyncio
    async def test_refresh_unknown_pool(self, pools):
        """Test that refreshing an unknown key fails before querying."""
        gateway = AsyncMock()

        with pytest.raises(UnknownPool):
            await pools.refresh(gateway, ["SUI_NOPE"])

        gateway.query_pool_params.assert_not_called()

    @pytest.mark.asyncio
    async def test_reader_never_sees_partial_snapshot(self, pools):
        """Test that concurrent readers see the old or the new snapshot only."""
        release = asyncio.Event()

        async def slow_params(handle):
            await release.wait()
            return (1_000_000, 1_000_000, 1_000_000)

        gateway = AsyncMock()
        gateway.query_pool_params.side_effect = slow_params

        before = pools.snapshot()
        task = asyncio.ensure_future(pools.refresh(gateway))
        await asyncio.sleep(0)

        assert pools.snapshot() is before
        assert pools.resolve_pool("SUI_DBUSDC").tick_size == 10_000

        release.set()
        after = await task

        assert {pool.tick_size for pool in after.values()} == {1_000_000}
        assert pools.snapshot() is after

    def test_replace_snapshot_checks_coins(self, pools):
        """Test that a replacement snapshot is validated."""
        bad = PoolMetadata("FOO_SUI", "0x1", "FOO", "SUI", 1, 1, 1)

        with pytest.raises(InvalidConfig):
            pools.replace_snapshot({"FOO_SUI": bad})

        assert "SUI_DBUSDC" in pools
