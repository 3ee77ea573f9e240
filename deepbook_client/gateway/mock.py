"""
DeepBook Client - Mock Chain Gateway.

============================================================
PURPOSE
============================================================
In-memory chain for testing the client.

FEATURES:
- Owned object version fencing, Lamport version bumps
- Atomic plan execution, aborts roll back every step
- Balance managers, trade caps, wallet coins
- Resting orders with locked funds, fills, settlement
- Staking, proposals, votes
- Configurable latency and error injection
- External mutation to simulate another actor

Failures are rendered as node error text and classified with the
same code the JSON-RPC gateway uses.

============================================================
"""

import asyncio
import copy
import itertools
import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, List, Optional, Set, Tuple, Union

from ..constants import CLOCK_OBJECT_ID, FLOAT_SCALAR
from ..errors import ChainExecutionError, ChainTimeout
from ..transactions.plan import (
    CoinWithBalance,
    MoveCall,
    ObjectRef,
    Pure,
    StepResult,
    TransactionPlan,
)
from ..types import (
    ChainFailure,
    ObjectState,
    Order,
    OrderPage,
    OrderSide,
    OrderStatus,
    OrderType,
    PoolBookParams,
    PoolHandle,
    TransactionOutcome,
)
from .base import ChainGateway, encode_order_id
from .errors import (
    classify_execution_failure,
    format_move_abort,
    format_version_unavailable,
)


logger = logging.getLogger(__name__)


# ============================================================
# MOCK CONFIGURATION
# ============================================================

@dataclass
class MockConfig:
    """Configuration for the mock gateway."""

    sender: str = "0x" + "a" * 64
    """Address that signs every submitted plan."""

    package_id: str = "0xdee9"
    """Package address rendered in abort messages."""

    deep_type: str = "0xdeep::deep::DEEP"
    """Coin type staked by governance calls."""

    latency_seconds: float = 0.0
    """Simulated round-trip latency for submissions."""

    query_latency_seconds: float = 0.0
    """Simulated round-trip latency for queries."""

    resolve_timeouts: bool = True
    """Whether wait_for_transaction finds transactions hidden by an injected timeout."""


# ============================================================
# LEDGER
# ============================================================

@dataclass
class MockObject:
    object_id: str
    version: int
    owner: Optional[str]
    object_type: str


@dataclass
class MockLedger:
    """All mutable chain state. Copied per transaction."""

    objects: Dict[str, MockObject] = field(default_factory=dict)
    balances: Dict[str, Dict[str, int]] = field(default_factory=dict)
    wallet: Dict[str, int] = field(default_factory=dict)
    trade_caps: Dict[str, Set[str]] = field(default_factory=dict)
    pools: Dict[str, PoolBookParams] = field(default_factory=dict)
    whitelisted: Set[str] = field(default_factory=set)
    orders: Dict[str, Dict[int, Order]] = field(default_factory=dict)
    closed_orders: Dict[str, Dict[int, Order]] = field(default_factory=dict)
    locked: Dict[int, Tuple[str, int]] = field(default_factory=dict)
    settled: Dict[Tuple[str, str], Dict[str, int]] = field(default_factory=dict)
    rebates: Dict[Tuple[str, str], int] = field(default_factory=dict)
    stakes: Dict[Tuple[str, str], int] = field(default_factory=dict)
    proposals: Dict[str, Set[str]] = field(default_factory=dict)
    votes: Dict[Tuple[str, str], str] = field(default_factory=dict)


class _Abort(Exception):
    """Execution failure carrying node error text."""

    def __init__(self, text: str):
        super().__init__(text)
        self.text = text


_PROOF = "proof"


# ============================================================
# MOCK GATEWAY
# ============================================================

class MockChainGateway(ChainGateway):
    """
    Mock chain gateway for testing.

    Example:
        gateway = MockChainGateway()
        manager_id = gateway.register_manager(balances={SUI_TYPE: 10**9})
        gateway.register_pool(pool_handle, tick_size, lot_size, min_size)
    """

    def __init__(self, config: Optional[MockConfig] = None):
        self._config = config or MockConfig()
        self._ledger = MockLedger()
        self._connected = False

        self._ids = itertools.count(0x1000)
        self._digests = itertools.count(1)
        self._sequence = itertools.count(1)
        self._pool_types: Dict[str, Tuple[str, str]] = {}

        self._submit_failures: Deque[Tuple[Union[BaseException, ChainFailure], bool]] = deque()
        self._query_failures: Deque[BaseException] = deque()

        # Observations for tests
        self.submitted: List[TransactionPlan] = []
        self.outcomes: List[TransactionOutcome] = []
        self.query_object_calls: List[str] = []
        self.wait_calls: List[str] = []
        self.in_flight: Dict[str, int] = {}
        self.max_in_flight: Dict[str, int] = {}

    @property
    def is_connected(self) -> bool:
        return self._connected

    @property
    def config(self) -> MockConfig:
        return self._config

    @property
    def ledger(self) -> MockLedger:
        return self._ledger

    async def connect(self) -> None:
        self._connected = True
        logger.info("Connected to mock chain")

    async def disconnect(self) -> None:
        self._connected = False
        logger.info("Disconnected from mock chain")

    # --------------------------------------------------------
    # SETUP
    # --------------------------------------------------------

    def new_object_id(self) -> str:
        return f"0x{next(self._ids):064x}"

    def register_manager(
        self,
        object_id: Optional[str] = None,
        owner: Optional[str] = None,
        version: int = 1,
        balances: Optional[Dict[str, int]] = None,
    ) -> str:
        object_id = object_id or self.new_object_id()
        self._ledger.objects[object_id] = MockObject(
            object_id=object_id,
            version=version,
            owner=owner or self._config.sender,
            object_type=f"{self._config.package_id}::balance_manager::BalanceManager",
        )
        self._ledger.balances[object_id] = dict(balances or {})
        self._ledger.trade_caps[object_id] = set()
        return object_id

    def register_trade_cap(self, manager_id: str, owner: Optional[str] = None) -> str:
        cap_id = self.new_object_id()
        self._ledger.objects[cap_id] = MockObject(
            object_id=cap_id,
            version=1,
            owner=owner or self._config.sender,
            object_type=f"{self._config.package_id}::balance_manager::TradeCap",
        )
        self._ledger.trade_caps[manager_id].add(cap_id)
        return cap_id

    def register_pool(
        self,
        pool: PoolHandle,
        tick_size: int,
        lot_size: int,
        min_size: int,
        whitelisted: bool = False,
    ) -> None:
        pool_id = pool.pool_id
        self._pool_types[pool_id] = pool.type_arguments
        self._ledger.pools[pool_id] = (tick_size, lot_size, min_size)
        self._ledger.orders.setdefault(pool_id, {})
        self._ledger.closed_orders.setdefault(pool_id, {})
        self._ledger.proposals.setdefault(pool_id, set())
        if whitelisted:
            self._ledger.whitelisted.add(pool_id)

    def set_wallet_balance(self, coin_type: str, amount: int) -> None:
        self._ledger.wallet[coin_type] = amount

    def set_manager_balance(self, manager_id: str, coin_type: str, amount: int) -> None:
        """Change a balance without a version bump."""
        self._ledger.balances[manager_id][coin_type] = amount

    def manager_balance(self, manager_id: str, coin_type: str) -> int:
        return self._ledger.balances.get(manager_id, {}).get(coin_type, 0)

    def object_version(self, object_id: str) -> int:
        return self._ledger.objects[object_id].version

    def mutate_externally(self, object_id: str) -> int:
        """Simulate another actor's transaction on an object."""
        obj = self._ledger.objects[object_id]
        obj.version += 1
        logger.debug(f"External mutation of {object_id}: version {obj.version}")
        return obj.version

    def fill_order(self, pool_id: str, order_id: int) -> Order:
        """Fill a resting order completely and settle the proceeds."""
        order = self._ledger.orders[pool_id].pop(order_id)
        base_type, quote_type = self._pool_types[pool_id]
        self._ledger.locked.pop(order_id, None)

        if order.side is OrderSide.BUY:
            proceeds = (base_type, order.quantity)
        else:
            proceeds = (quote_type, order.price * order.quantity // FLOAT_SCALAR)
        settled = self._ledger.settled.setdefault((pool_id, order.balance_manager_id), {})
        settled[proceeds[0]] = settled.get(proceeds[0], 0) + proceeds[1]

        order.filled_quantity = order.quantity
        order.update_status(OrderStatus.FILLED)
        self._ledger.closed_orders[pool_id][order_id] = order
        return order

    def add_rebate(self, pool_id: str, manager_id: str, amount: int) -> None:
        key = (pool_id, manager_id)
        self._ledger.rebates[key] = self._ledger.rebates.get(key, 0) + amount

    # --------------------------------------------------------
    # ERROR INJECTION
    # --------------------------------------------------------

    def inject_failure(
        self,
        failure: Union[BaseException, ChainFailure],
        execute_first: bool = False,
    ) -> None:
        """
        Fail the next submission.

        An exception is raised, a ChainFailure is returned as a failed
        outcome without consuming any object. With execute_first the
        plan commits before the exception is raised, the way a timeout
        can hide a committed transaction.
        """
        self._submit_failures.append((failure, execute_first))

    def inject_query_failure(self, error: BaseException) -> None:
        self._query_failures.append(error)

    # --------------------------------------------------------
    # SUBMIT
    # --------------------------------------------------------

    async def submit(self, plan: TransactionPlan) -> TransactionOutcome:
        self.submitted.append(plan)
        owned = [ref.object_id for ref in plan.object_refs().values() if not ref.shared]
        for object_id in owned:
            self.in_flight[object_id] = self.in_flight.get(object_id, 0) + 1
            self.max_in_flight[object_id] = max(
                self.max_in_flight.get(object_id, 0), self.in_flight[object_id]
            )
        try:
            if self._config.latency_seconds:
                await asyncio.sleep(self._config.latency_seconds)

            if self._submit_failures:
                failure, execute_first = self._submit_failures.popleft()
                if isinstance(failure, ChainFailure):
                    outcome = TransactionOutcome(success=False, digest=self._digest(), failure=failure)
                    self.outcomes.append(outcome)
                    return outcome
                digest = self._digest()
                if execute_first:
                    outcome = self._execute(plan, digest)
                    self.outcomes.append(outcome)
                if isinstance(failure, ChainTimeout) and not failure.digest:
                    failure.attach_digest(digest)
                raise failure

            outcome = self._execute(plan)
            self.outcomes.append(outcome)
            return outcome
        finally:
            for object_id in owned:
                self.in_flight[object_id] -= 1

    async def wait_for_transaction(
        self,
        digest: str,
        timeout_seconds: float,
    ) -> Optional[TransactionOutcome]:
        """Executed outcome for digest. Transactions never executed are not found."""
        self.wait_calls.append(digest)
        if not self._config.resolve_timeouts:
            return None
        return next((outcome for outcome in self.outcomes if outcome.digest == digest), None)

    def _digest(self) -> str:
        return f"mock-{next(self._digests):08d}"

    def _execute(self, plan: TransactionPlan, digest: Optional[str] = None) -> TransactionOutcome:
        digest = digest or self._digest()
        refs = plan.object_refs()

        # Input checks happen before execution and consume nothing
        for ref in refs.values():
            if ref.object_id == CLOCK_OBJECT_ID:
                continue
            if ref.shared:
                if ref.object_id not in self._ledger.pools and ref.object_id not in self._ledger.objects:
                    return self._rejected(digest, f"ObjectNotFound {{ object_id: {ref.object_id} }}")
                continue
            obj = self._ledger.objects.get(ref.object_id)
            if obj is None:
                return self._rejected(digest, f"ObjectNotFound {{ object_id: {ref.object_id} }}")
            if ref.version is not None and ref.version != obj.version:
                return self._rejected(
                    digest,
                    format_version_unavailable(ref.object_id, ref.version, obj.version),
                )

        mutated = [
            ref.object_id for ref in refs.values()
            if ref.mutable and ref.object_id in self._ledger.objects
        ]
        lamport = max([self._ledger.objects[i].version for i in mutated] + [0]) + 1

        scratch = copy.deepcopy(self._ledger)
        created: Dict[str, str] = {}
        results: List[Any] = []
        try:
            for index, call in enumerate(plan.steps):
                results.append(self._run(call, plan, results, scratch, created, index))
        except _Abort as abort:
            versions = self._bump(self._ledger, mutated, lamport)
            return TransactionOutcome(
                success=False,
                digest=digest,
                object_versions=versions,
                failure=classify_execution_failure(abort.text),
            )

        self._ledger = scratch
        versions = self._bump(self._ledger, mutated + list(created), lamport)
        return TransactionOutcome(
            success=True,
            digest=digest,
            object_versions=versions,
            created_objects=created,
            return_values=results,
        )

    @staticmethod
    def _bump(ledger: MockLedger, object_ids: List[str], lamport: int) -> Dict[str, int]:
        versions = {}
        for object_id in object_ids:
            ledger.objects[object_id].version = lamport
            versions[object_id] = lamport
        return versions

    def _rejected(self, digest: str, text: str) -> TransactionOutcome:
        return TransactionOutcome(
            success=False,
            digest=digest,
            failure=classify_execution_failure(text),
        )

    # --------------------------------------------------------
    # MOVE CALLS
    # --------------------------------------------------------

    def _abort(self, module: str, function: str, code: int, index: int) -> _Abort:
        return _Abort(format_move_abort(self._config.package_id, module, function, code, index))

    def _resolve(self, arg: Any, results: List[Any], ledger: MockLedger, index: int) -> Any:
        if isinstance(arg, ObjectRef):
            return arg.object_id
        if isinstance(arg, Pure):
            return arg.value
        if isinstance(arg, StepResult):
            return results[arg.index]
        if isinstance(arg, CoinWithBalance):
            available = ledger.wallet.get(arg.coin_type, 0)
            if available < arg.amount:
                raise _Abort(f"InsufficientCoinBalance in command {index}")
            ledger.wallet[arg.coin_type] = available - arg.amount
            return (arg.coin_type, arg.amount)
        return arg

    def _credit(self, ledger: MockLedger, manager_id: str, coin_type: str, amount: int) -> None:
        balances = ledger.balances[manager_id]
        balances[coin_type] = balances.get(coin_type, 0) + amount

    def _debit(self, ledger, manager_id, coin_type, amount, function, index) -> None:
        balances = ledger.balances[manager_id]
        if balances.get(coin_type, 0) < amount:
            raise self._abort("balance_manager", function, 3, index)
        balances[coin_type] -= amount

    def _run(
        self,
        call: MoveCall,
        plan: TransactionPlan,
        results: List[Any],
        ledger: MockLedger,
        created: Dict[str, str],
        index: int,
    ) -> Any:
        args = [self._resolve(arg, results, ledger, index) for arg in call.arguments]
        function = call.function

        if call.module == "transfer":
            return None

        if call.module == "balance_manager":
            return self._run_balance_manager(call, plan, args, ledger, created, index)

        if call.module == "pool":
            pool_id, manager_id, proof = args[0], args[1], args[2]
            if pool_id not in ledger.pools:
                raise self._abort("pool", function, 99, index)
            if proof != (_PROOF, manager_id):
                raise self._abort("balance_manager", function, 2, index)
            handler = getattr(self, f"_pool_{function}", None)
            if handler is None:
                raise self._abort("pool", function, 99, index)
            return handler(call, args, ledger, index)

        raise self._abort(call.module, function, 99, index)

    def _run_balance_manager(self, call, plan, args, ledger, created, index) -> Any:
        function = call.function

        if function == "new":
            object_id = self.new_object_id()
            object_type = f"{self._config.package_id}::balance_manager::BalanceManager"
            ledger.objects[object_id] = MockObject(object_id, 0, plan.sender, object_type)
            ledger.balances[object_id] = {}
            ledger.trade_caps[object_id] = set()
            created[object_id] = object_type
            return object_id

        manager_id = args[0]
        owner = ledger.objects[manager_id].owner

        if function == "generate_proof_as_trader":
            cap = ledger.objects.get(args[1])
            if args[1] not in ledger.trade_caps[manager_id] or cap is None or cap.owner != plan.sender:
                raise self._abort("balance_manager", function, 1, index)
            return (_PROOF, manager_id)

        if owner != plan.sender:
            raise self._abort("balance_manager", function, 0, index)

        if function == "generate_proof_as_owner":
            return (_PROOF, manager_id)

        if function == "deposit":
            coin_type, amount = args[1]
            self._credit(ledger, manager_id, coin_type, amount)
            return None

        if function == "withdraw":
            self._debit(ledger, manager_id, call.type_arguments[0], args[1], function, index)
            return None

        if function == "withdraw_all":
            ledger.balances[manager_id][call.type_arguments[0]] = 0
            return None

        if function == "mint_trade_cap":
            cap_id = self.new_object_id()
            cap_type = f"{self._config.package_id}::balance_manager::TradeCap"
            ledger.objects[cap_id] = MockObject(cap_id, 0, call.result_recipient or plan.sender, cap_type)
            ledger.trade_caps[manager_id].add(cap_id)
            created[cap_id] = cap_type
            return cap_id

        raise self._abort("balance_manager", function, 99, index)

    # --------------------------------------------------------
    # POOL CALLS
    # --------------------------------------------------------

    def _check_size(self, ledger, pool_id, quantity, function, index) -> None:
        _, lot_size, min_size = ledger.pools[pool_id]
        if quantity % lot_size != 0:
            raise self._abort("book", function, 6, index)
        if quantity < min_size:
            raise self._abort("book", function, 5, index)

    def _pool_place_limit_order(self, call, args, ledger, index) -> int:
        pool_id, manager_id = args[0], args[1]
        client_order_id, order_type, _, price, quantity, is_bid, _, expire = args[3:11]
        tick_size = ledger.pools[pool_id][0]
        if price % tick_size != 0:
            raise self._abort("book", call.function, 4, index)
        self._check_size(ledger, pool_id, quantity, call.function, index)

        if order_type == OrderType.FILL_OR_KILL:
            raise self._abort("order_info", call.function, 3, index)

        base_type, quote_type = call.type_arguments
        if is_bid:
            locked = (quote_type, price * quantity // FLOAT_SCALAR)
        else:
            locked = (base_type, quantity)
        self._debit(ledger, manager_id, locked[0], locked[1], call.function, index)

        order_id = encode_order_id(is_bid, price, next(self._sequence))
        order = Order(
            order_id=order_id,
            balance_manager_id=manager_id,
            pool_id=pool_id,
            side=OrderSide.BUY if is_bid else OrderSide.SELL,
            price=price,
            quantity=quantity,
            client_order_id=client_order_id,
            expire_timestamp=expire,
        )
        if order_type == OrderType.IMMEDIATE_OR_CANCEL:
            # Empty book: nothing crosses, the rest is cancelled
            self._credit(ledger, manager_id, locked[0], locked[1])
            order.update_status(OrderStatus.CANCELLED)
            ledger.closed_orders[pool_id][order_id] = order
        else:
            ledger.orders[pool_id][order_id] = order
            ledger.locked[order_id] = locked
        return order_id

    def _pool_place_market_order(self, call, args, ledger, index) -> int:
        pool_id, manager_id = args[0], args[1]
        quantity, is_bid = args[5], args[6]
        self._check_size(ledger, pool_id, quantity, call.function, index)
        if not is_bid:
            balance = ledger.balances[manager_id].get(call.type_arguments[0], 0)
            if balance < quantity:
                raise self._abort("balance_manager", call.function, 3, index)
        # Empty book: nothing fills
        return 0

    def _cancel(self, ledger, pool_id, manager_id, order_id) -> None:
        order = ledger.orders[pool_id].pop(order_id)
        coin_type, amount = ledger.locked.pop(order_id)
        self._credit(ledger, manager_id, coin_type, amount)
        order.update_status(OrderStatus.CANCELLED)
        ledger.closed_orders[pool_id][order_id] = order

    def _pool_cancel_order(self, call, args, ledger, index) -> None:
        pool_id, manager_id, order_id = args[0], args[1], int(args[3])
        order = ledger.orders[pool_id].get(order_id)
        if order is None or order.balance_manager_id != manager_id:
            closed = ledger.closed_orders[pool_id].get(order_id)
            if closed is not None and closed.status is OrderStatus.FILLED:
                raise self._abort("book", call.function, 8, index)
            raise self._abort("book", call.function, 7, index)
        self._cancel(ledger, pool_id, manager_id, order_id)

    def _pool_cancel_all_orders(self, call, args, ledger, index) -> None:
        pool_id, manager_id = args[0], args[1]
        for order_id, order in list(ledger.orders[pool_id].items()):
            if order.balance_manager_id == manager_id:
                self._cancel(ledger, pool_id, manager_id, order_id)

    def _pool_withdraw_settled_amounts(self, call, args, ledger, index) -> None:
        pool_id, manager_id = args[0], args[1]
        settled = ledger.settled.pop((pool_id, manager_id), {})
        for coin_type, amount in settled.items():
            self._credit(ledger, manager_id, coin_type, amount)

    def _pool_claim_rebates(self, call, args, ledger, index) -> None:
        pool_id, manager_id = args[0], args[1]
        amount = ledger.rebates.pop((pool_id, manager_id), 0)
        self._credit(ledger, manager_id, self._config.deep_type, amount)

    def _pool_stake(self, call, args, ledger, index) -> None:
        pool_id, manager_id, amount = args[0], args[1], args[3]
        self._debit(ledger, manager_id, self._config.deep_type, amount, call.function, index)
        key = (pool_id, manager_id)
        ledger.stakes[key] = ledger.stakes.get(key, 0) + amount

    def _pool_unstake(self, call, args, ledger, index) -> None:
        pool_id, manager_id = args[0], args[1]
        amount = ledger.stakes.pop((pool_id, manager_id), 0)
        if amount == 0:
            raise self._abort("state", call.function, 1, index)
        self._credit(ledger, manager_id, self._config.deep_type, amount)

    def _pool_submit_proposal(self, call, args, ledger, index) -> None:
        pool_id, manager_id = args[0], args[1]
        taker_fee, maker_fee, stake_required = args[3], args[4], args[5]
        if taker_fee >= FLOAT_SCALAR or maker_fee >= FLOAT_SCALAR:
            raise self._abort("governance", call.function, 1, index)
        if ledger.stakes.get((pool_id, manager_id), 0) < stake_required:
            raise self._abort("governance", call.function, 4, index)
        ledger.proposals[pool_id].add(manager_id)

    def _pool_vote(self, call, args, ledger, index) -> None:
        pool_id, manager_id, proposal_id = args[0], args[1], args[3]
        if ledger.stakes.get((pool_id, manager_id), 0) == 0:
            raise self._abort("state", call.function, 1, index)
        if proposal_id not in ledger.proposals[pool_id]:
            raise self._abort("governance", call.function, 3, index)
        ledger.votes[(pool_id, manager_id)] = proposal_id

    # --------------------------------------------------------
    # QUERIES
    # --------------------------------------------------------

    async def _before_query(self) -> None:
        if self._config.query_latency_seconds:
            await asyncio.sleep(self._config.query_latency_seconds)
        if self._query_failures:
            raise self._query_failures.popleft()

    async def query_object(self, object_id: str) -> ObjectState:
        self.query_object_calls.append(object_id)
        await self._before_query()
        obj = self._ledger.objects.get(object_id)
        if obj is None:
            raise ChainExecutionError(f"Object {object_id} not readable: notExists", reason="OBJECT_NOT_FOUND")
        return ObjectState(
            object_id=object_id,
            version=obj.version,
            owner=obj.owner,
            object_type=obj.object_type,
            fields={"balances": dict(self._ledger.balances.get(object_id, {}))},
        )

    async def query_open_orders(
        self,
        manager_id: str,
        pool: PoolHandle,
        cursor: Optional[str] = None,
        limit: int = 50,
    ) -> OrderPage:
        await self._before_query()
        orders = sorted(
            (
                copy.copy(order)
                for order in self._ledger.orders.get(pool.pool_id, {}).values()
                if order.balance_manager_id == manager_id
            ),
            key=lambda order: order.order_id,
        )
        start = int(cursor) if cursor else 0
        page = orders[start:start + limit]
        end = start + len(page)
        return OrderPage(orders=page, next_cursor=str(end) if end < len(orders) else None)

    async def query_manager_balance(self, manager_id: str, coin_type: str) -> int:
        await self._before_query()
        if manager_id not in self._ledger.balances:
            raise ChainExecutionError(f"Object {manager_id} not readable: notExists", reason="OBJECT_NOT_FOUND")
        return self._ledger.balances[manager_id].get(coin_type, 0)

    async def query_pool_params(self, pool: PoolHandle) -> PoolBookParams:
        await self._before_query()
        params = self._ledger.pools.get(pool.pool_id)
        if params is None:
            raise ChainExecutionError(f"Object {pool.pool_id} not readable: notExists", reason="OBJECT_NOT_FOUND")
        return params

    async def query_pool_whitelisted(self, pool: PoolHandle) -> bool:
        await self._before_query()
        return pool.pool_id in self._ledger.whitelisted
