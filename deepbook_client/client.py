"""
DeepBook Client - Client Facade.

============================================================
PURPOSE
============================================================
Single entry point for DeepBook operations.

WRITE PIPELINE:
    build -> sequence -> submit -> apply outcome
Every write returns the TransactionOutcome of a confirmed plan or
raises a DeepbookError describing why it did not (or may not have)
happened.

READS:
- Never pass through the MutationSequencer.
- Balance reads use the cache while it is fresh and query the chain
  otherwise.

USAGE:
    config = DeepbookConfig.from_yaml("deepbook.yaml")
    async with DeepbookClient(config, gateway) as client:
        await client.deposit_into_manager("M1", "SUI", "1.5")
        await client.place_limit_order("M1", "SUI_DBUSDC", OrderSide.BUY, "2.5", "1")

============================================================
"""

import logging
from typing import List, Optional

from .config import DeepbookConfig
from .constants import MAX_TIMESTAMP
from .errors import ChainExecutionError, InvalidArgument
from .gateway.base import ChainGateway
from .registry import CoinRegistry, PoolRegistry
from .retry import with_retries
from .scaling import AmountScaler, HumanAmount
from .sequencer import MutationSequencer
from .store import BalanceManagerStore
from .transactions.balance_manager import BALANCE_MANAGER_TYPE_SUFFIX
from .transactions.builder import TransactionBuilder
from .transactions.plan import ObjectRef
from .types import (
    BalanceManager,
    ManagerBalance,
    Order,
    OrderSide,
    OrderType,
    PoolMetadata,
    SelfMatchingOption,
    TransactionOutcome,
)


logger = logging.getLogger(__name__)


class DeepbookClient:
    """
    DeepBook client.

    Owns the registries, the balance manager store, the builder and the
    sequencer. The gateway is supplied by the caller.
    """

    def __init__(self, config: DeepbookConfig, gateway: ChainGateway):
        config.validate()
        self._config = config
        self._gateway = gateway

        self.coins = CoinRegistry(config.resolved_coins())
        self.pools = PoolRegistry(config.resolved_pools(), self.coins)
        self.scaler = AmountScaler(self.coins, self.pools)
        self.builder = TransactionBuilder(config, self.coins, self.pools, self.scaler)

        self.store = BalanceManagerStore(balance_ttl_seconds=config.cache.balance_ttl_seconds)
        for name, manager in config.balance_managers.items():
            self.store.register(
                name,
                manager.address,
                owner=manager.owner,
                trade_cap=manager.trade_cap,
            )

        self.sequencer = MutationSequencer(self.store, gateway, config.retry, config.timeout)

        logger.info(
            f"DeepbookClient initialized: env={config.env}, "
            f"{len(self.coins)} coins, {len(self.pools)} pools, "
            f"{len(self.store.names())} balance managers"
        )

    @property
    def config(self) -> DeepbookConfig:
        return self._config

    @property
    def gateway(self) -> ChainGateway:
        return self._gateway

    # --------------------------------------------------------
    # LIFECYCLE
    # --------------------------------------------------------

    async def connect(self) -> None:
        if not self._gateway.is_connected:
            await self._gateway.connect()

    async def close(self) -> None:
        if self._gateway.is_connected:
            await self._gateway.disconnect()

    async def __aenter__(self) -> "DeepbookClient":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # --------------------------------------------------------
    # BALANCE MANAGERS
    # --------------------------------------------------------

    def register_balance_manager(
        self,
        name: str,
        object_id: str,
        trade_cap: Optional[str] = None,
        owner: Optional[str] = None,
    ) -> BalanceManager:
        """Register an existing balance manager under a logical name."""
        return self.store.register(name, object_id, owner=owner, trade_cap=trade_cap)

    def get_manager(self, name: str) -> BalanceManager:
        return self.store.get(name)

    async def create_and_share_balance_manager(self, name: str) -> TransactionOutcome:
        """
        Create a shared balance manager owned by the sender.

        The created object is registered under name.

        Raises:
            InvalidArgument: name is already registered
        """
        if name in self.store:
            raise InvalidArgument("name", "balance manager name already registered", name)

        plan = self.builder.create_and_share_balance_manager()
        outcome = await self.sequencer.submit_detached(plan)

        created = outcome.created_of_type(BALANCE_MANAGER_TYPE_SUFFIX)
        if not created:
            raise ChainExecutionError(
                "Transaction confirmed but created no balance manager",
                reason="MISSING_CREATED_OBJECT",
                digest=outcome.digest,
            )
        object_id = created[0]
        self.store.register(
            name,
            object_id,
            version=outcome.object_versions.get(object_id),
            owner=self._config.address,
        )
        return outcome

    async def check_manager_balance(self, manager: str, coin: str) -> ManagerBalance:
        """
        Balance of coin held by a balance manager.

        Answers from the cache while fresh, otherwise queries the chain.
        """
        metadata = self.coins.resolve(coin)
        raw_amount = self.store.cached_balance(manager, coin)

        if raw_amount is None:
            snapshot = self.store.get(manager)
            busy_before = self.sequencer.is_busy(manager)
            if coin in snapshot.balances:
                logger.warning(f"Balance manager {manager}: cached {coin} balance stale, refetching")
            raw_amount = await with_retries(
                lambda: self._gateway.query_manager_balance(snapshot.object_id, metadata.coin_type),
                self._config.retry,
                f"Query {coin} balance of {manager}",
            )
            if self._read_is_cacheable(manager, snapshot, busy_before):
                self.store.set_balance(manager, coin, raw_amount)
            else:
                logger.debug(f"Balance manager {manager}: {coin} read overlapped a mutation, not cached")

        return ManagerBalance(
            manager=manager,
            coin=coin,
            coin_type=metadata.coin_type,
            raw_amount=raw_amount,
            amount=self.scaler.from_chain_amount(raw_amount, metadata),
        )

    def _read_is_cacheable(self, manager: str, snapshot: BalanceManager, busy_before: bool) -> bool:
        # No mutation admitted or left unresolved while the read was in flight
        current = self.store.get(manager)
        return (
            not busy_before
            and not self.sequencer.is_busy(manager)
            and current.mutation_count == snapshot.mutation_count
            and not snapshot.version_unknown
            and not current.version_unknown
        )

    async def deposit_into_manager(
        self,
        manager: str,
        coin: str,
        amount: HumanAmount,
        source_coin: Optional[str] = None,
    ) -> TransactionOutcome:
        """Deposit from the sender's wallet, optionally splitting from source_coin."""
        source = ObjectRef(source_coin) if source_coin else None
        return await self.sequencer.execute(
            manager,
            lambda snapshot: self.builder.deposit(snapshot, coin, amount, source),
        )

    async def withdraw_from_manager(
        self,
        manager: str,
        coin: str,
        amount: HumanAmount,
        recipient: Optional[str] = None,
    ) -> TransactionOutcome:
        return await self.sequencer.execute(
            manager,
            lambda snapshot: self.builder.withdraw(snapshot, coin, amount, recipient),
        )

    async def withdraw_all_from_manager(
        self,
        manager: str,
        coin: str,
        recipient: Optional[str] = None,
    ) -> TransactionOutcome:
        return await self.sequencer.execute(
            manager,
            lambda snapshot: self.builder.withdraw_all(snapshot, coin, recipient),
        )

    async def mint_and_transfer_trade_cap(self, manager: str, recipient: str) -> TransactionOutcome:
        """Mint a TradeCap for manager and send it to recipient."""
        return await self.sequencer.execute(
            manager,
            lambda snapshot: self.builder.mint_and_transfer_trade_cap(snapshot, recipient),
        )

    # --------------------------------------------------------
    # ORDERS
    # --------------------------------------------------------

    async def place_limit_order(
        self,
        manager: str,
        pool: str,
        side: OrderSide,
        price: HumanAmount,
        quantity: HumanAmount,
        order_type: OrderType = OrderType.NO_RESTRICTION,
        expiration: int = MAX_TIMESTAMP,
        client_order_id: int = 0,
        self_matching_option: SelfMatchingOption = SelfMatchingOption.SELF_MATCHING_ALLOWED,
        pay_with_deep: bool = True,
    ) -> TransactionOutcome:
        """
        Place a limit order.

        Price and quantity are human values. They are validated against
        the pool's tick, lot and minimum sizes before anything is sent.
        """
        return await self.sequencer.execute(
            manager,
            lambda snapshot: self.builder.place_limit_order(
                snapshot, pool, side, price, quantity,
                order_type=order_type,
                expiration=expiration,
                client_order_id=client_order_id,
                self_matching_option=self_matching_option,
                pay_with_deep=pay_with_deep,
            ),
        )

    async def deposit_and_place_limit_order(
        self,
        manager: str,
        pool: str,
        side: OrderSide,
        price: HumanAmount,
        quantity: HumanAmount,
        deposit_coin: str,
        deposit_amount: HumanAmount,
        order_type: OrderType = OrderType.NO_RESTRICTION,
        expiration: int = MAX_TIMESTAMP,
        client_order_id: int = 0,
        self_matching_option: SelfMatchingOption = SelfMatchingOption.SELF_MATCHING_ALLOWED,
        pay_with_deep: bool = True,
    ) -> TransactionOutcome:
        """Deposit and place a limit order atomically."""
        return await self.sequencer.execute(
            manager,
            lambda snapshot: self.builder.deposit_and_place_limit_order(
                snapshot, pool, side, price, quantity, deposit_coin, deposit_amount,
                order_type=order_type,
                expiration=expiration,
                client_order_id=client_order_id,
                self_matching_option=self_matching_option,
                pay_with_deep=pay_with_deep,
            ),
        )

    async def place_market_order(
        self,
        manager: str,
        pool: str,
        side: OrderSide,
        quantity: HumanAmount,
        client_order_id: int = 0,
        self_matching_option: SelfMatchingOption = SelfMatchingOption.SELF_MATCHING_ALLOWED,
        pay_with_deep: bool = True,
    ) -> TransactionOutcome:
        return await self.sequencer.execute(
            manager,
            lambda snapshot: self.builder.place_market_order(
                snapshot, pool, side, quantity,
                client_order_id=client_order_id,
                self_matching_option=self_matching_option,
                pay_with_deep=pay_with_deep,
            ),
        )

    async def cancel_order(self, manager: str, pool: str, order_id: int) -> TransactionOutcome:
        """
        Cancel one order.

        Raises:
            ChainExecutionError: reason ORDER_NOT_FOUND or ALREADY_FILLED
                when the order is gone. Never retried.
        """
        return await self.sequencer.execute(
            manager,
            lambda snapshot: self.builder.cancel_order(snapshot, pool, order_id),
        )

    async def cancel_all_orders(self, manager: str, pool: str) -> TransactionOutcome:
        return await self.sequencer.execute(
            manager,
            lambda snapshot: self.builder.cancel_all_orders(snapshot, pool),
        )

    async def withdraw_settled_amounts(self, manager: str, pool: str) -> TransactionOutcome:
        return await self.sequencer.execute(
            manager,
            lambda snapshot: self.builder.withdraw_settled_amounts(snapshot, pool),
        )

    async def claim_rebates(self, manager: str, pool: str) -> TransactionOutcome:
        return await self.sequencer.execute(
            manager,
            lambda snapshot: self.builder.claim_rebates(snapshot, pool),
        )

    async def account_open_orders(self, manager: str, pool: str) -> List[Order]:
        """All open orders of a balance manager in a pool, across every page."""
        snapshot = self.store.get(manager)
        handle = self.pools.handle(self.pools.resolve_pool(pool))

        orders: List[Order] = []
        cursor: Optional[str] = None
        while True:
            page = await with_retries(
                lambda: self._gateway.query_open_orders(snapshot.object_id, handle, cursor),
                self._config.retry,
                f"Query open orders of {manager} on {pool}",
            )
            orders.extend(page.orders)
            if not page.has_next_page:
                return orders
            cursor = page.next_cursor

    # --------------------------------------------------------
    # POOLS
    # --------------------------------------------------------

    async def refresh_pools(self, pools: Optional[List[str]] = None) -> None:
        """Reload tick, lot and minimum sizes from the chain."""
        await with_retries(
            lambda: self.pools.refresh(self._gateway, pools),
            self._config.retry,
            "Refresh pool registry",
        )

    async def get_pool_info(self, pool: str) -> PoolMetadata:
        """Pool metadata with book parameters freshly read from the chain."""
        self.pools.resolve_pool(pool)
        await self.refresh_pools([pool])
        return self.pools.resolve_pool(pool)

    async def is_whitelisted(self, pool: str) -> bool:
        handle = self.pools.handle(self.pools.resolve_pool(pool))
        return await with_retries(
            lambda: self._gateway.query_pool_whitelisted(handle),
            self._config.retry,
            f"Query whitelist status of {pool}",
        )

    # --------------------------------------------------------
    # GOVERNANCE
    # --------------------------------------------------------

    async def stake(self, manager: str, pool: str, amount: HumanAmount) -> TransactionOutcome:
        """Stake amount DEEP from the balance manager."""
        return await self.sequencer.execute(
            manager,
            lambda snapshot: self.builder.stake(snapshot, pool, amount),
        )

    async def unstake(self, manager: str, pool: str) -> TransactionOutcome:
        return await self.sequencer.execute(
            manager,
            lambda snapshot: self.builder.unstake(snapshot, pool),
        )

    async def submit_proposal(
        self,
        manager: str,
        pool: str,
        taker_fee: HumanAmount,
        maker_fee: HumanAmount,
        stake_required: HumanAmount,
    ) -> TransactionOutcome:
        return await self.sequencer.execute(
            manager,
            lambda snapshot: self.builder.submit_proposal(
                snapshot, pool, taker_fee, maker_fee, stake_required,
            ),
        )

    async def vote(self, manager: str, pool: str, proposal_id: str) -> TransactionOutcome:
        return await self.sequencer.execute(
            manager,
            lambda snapshot: self.builder.vote(snapshot, pool, proposal_id),
        )
