"""
DeepBook Client - Types.

============================================================
PURPOSE
============================================================
Data model shared by every layer of the client.

CRITICAL PRINCIPLE:
    "Registries are snapshots, balance managers are fenced."
    Coin and pool metadata never change in place. A balance
    manager's object version only advances from a confirmed
    transaction outcome.

============================================================
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum, IntEnum
from typing import Any, Dict, List, Optional, Tuple


# ============================================================
# ORDER ENUMS
# ============================================================

class OrderSide(Enum):
    """Order side."""

    BUY = "BUY"
    SELL = "SELL"

    @property
    def is_bid(self) -> bool:
        return self is OrderSide.BUY


class OrderType(IntEnum):
    """
    Time in force of a limit order.

    Values are the on-chain constants of the pool module.
    """

    NO_RESTRICTION = 0
    """Rest on the book until filled, cancelled or expired."""

    IMMEDIATE_OR_CANCEL = 1
    """Fill what crosses, cancel the rest."""

    FILL_OR_KILL = 2
    """Fill completely or abort."""

    POST_ONLY = 3
    """Abort if any part would cross."""


class SelfMatchingOption(IntEnum):
    """Behaviour when an order would match the same balance manager."""

    SELF_MATCHING_ALLOWED = 0
    CANCEL_TAKER = 1
    CANCEL_MAKER = 2


class OrderStatus(Enum):
    """
    Order status as reported by the chain.

    Status only moves forward:

    OPEN ──► PARTIALLY_FILLED ──► FILLED
      │             │
      └─────────────┴──► CANCELLED / EXPIRED
    """

    OPEN = "OPEN"
    PARTIALLY_FILLED = "PARTIALLY_FILLED"
    FILLED = "FILLED"
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"

    def is_terminal(self) -> bool:
        """Check if this is a terminal status."""
        return self in {
            OrderStatus.FILLED,
            OrderStatus.CANCELLED,
            OrderStatus.EXPIRED,
        }

    def can_transition_to(self, new_status: "OrderStatus") -> bool:
        if self is new_status:
            return True
        if self.is_terminal():
            return False
        if self is OrderStatus.PARTIALLY_FILLED:
            return new_status is not OrderStatus.OPEN
        return True


# ============================================================
# REGISTRY METADATA
# ============================================================

@dataclass(frozen=True)
class CoinMetadata:
    """Coin known to the client. Identity is the symbol."""

    symbol: str
    """Registry key (e.g. SUI)."""

    coin_type: str
    """Fully qualified Move type (e.g. 0x2::sui::SUI)."""

    decimals: int
    """Decimal places of the on-chain integer representation."""

    address: str = ""
    """Package address that defines the coin type."""

    @property
    def scalar(self) -> int:
        return 10 ** self.decimals


@dataclass(frozen=True)
class PoolMetadata:
    """
    Trading pool known to the client.

    tick_size is in chain price units (see scaling.py), lot_size and
    min_size in base coin integer units.
    """

    pool_key: str
    """Registry key (e.g. SUI_USDC)."""

    pool_id: str
    """On-chain pool object id."""

    base_coin: str
    """Base coin symbol."""

    quote_coin: str
    """Quote coin symbol."""

    tick_size: int
    """Smallest price increment."""

    lot_size: int
    """Smallest quantity increment."""

    min_size: int
    """Minimum order quantity."""


@dataclass(frozen=True)
class PoolHandle:
    """What a Move call needs to address a pool: its id and type arguments."""

    pool_id: str
    base_type: str
    quote_type: str

    @property
    def type_arguments(self) -> Tuple[str, str]:
        return (self.base_type, self.quote_type)


# ============================================================
# BALANCE MANAGER
# ============================================================

@dataclass
class CachedBalance:
    """Cached raw balance for one coin."""

    amount: int
    fetched_at: datetime
    stale: bool = False


@dataclass
class BalanceManager:
    """
    Capability-gated on-chain sub-account.

    Instances handed out by BalanceManagerStore are copies. Mutating
    them never changes what the store holds.
    """

    name: str
    """Logical name used by the caller."""

    object_id: str
    """On-chain object id."""

    version: Optional[int] = None
    """Last confirmed object version, None when not yet known."""

    owner: Optional[str] = None
    """Owner address, when known."""

    trade_cap: Optional[str] = None
    """TradeCap object id when trading as a non-owner."""

    balances: Dict[str, CachedBalance] = field(default_factory=dict)
    """Cached balances by coin symbol."""

    version_unknown: bool = False
    """Set after a timed-out submission until the version is refetched."""

    mutation_count: int = 0
    """Mutations admitted so far. Reads that span an admission are not cached."""


# ============================================================
# ORDERS
# ============================================================

@dataclass
class Order:
    """Order constructed from chain query results."""

    order_id: int
    """On-chain order id (u128)."""

    balance_manager_id: str
    """Owning balance manager object id."""

    pool_id: str
    """Pool object id."""

    side: OrderSide
    """Order side."""

    price: int
    """Chain price units."""

    quantity: int
    """Original quantity in base integer units."""

    filled_quantity: int = 0
    """Filled quantity in base integer units."""

    status: OrderStatus = OrderStatus.OPEN
    """Last known status."""

    client_order_id: int = 0
    """Client order id given at placement."""

    expire_timestamp: Optional[int] = None
    """Expiration in milliseconds."""

    @property
    def remaining_quantity(self) -> int:
        return self.quantity - self.filled_quantity

    def update_status(self, new_status: OrderStatus) -> bool:
        """
        Apply a status observed in a later query.

        Returns:
            False if the transition goes backwards and was ignored
        """
        if not self.status.can_transition_to(new_status):
            return False
        self.status = new_status
        return True


@dataclass
class OrderPage:
    """One page of open orders."""

    orders: List[Order] = field(default_factory=list)
    next_cursor: Optional[str] = None

    @property
    def has_next_page(self) -> bool:
        return self.next_cursor is not None


# ============================================================
# CHAIN STATE
# ============================================================

@dataclass
class ObjectState:
    """Decoded object as returned by ChainGateway.query_object."""

    object_id: str
    version: int
    owner: Optional[str] = None
    object_type: str = ""
    fields: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ChainFailure:
    """Structured failure detail of an executed transaction."""

    code: str
    """Key into errors.ERROR_CODES."""

    message: str
    """Raw error text from the chain."""

    reason: str = "MOVE_ABORT"
    """Finer classification (ORDER_NOT_FOUND, ALREADY_FILLED, ...)."""

    abort_module: Optional[str] = None
    abort_code: Optional[int] = None

    object_id: Optional[str] = None
    """Conflicting object for version conflicts."""

    expected_version: Optional[int] = None
    actual_version: Optional[int] = None


@dataclass
class TransactionOutcome:
    """
    Result of submitting a plan.

    Version changes are reported for failed executions too, because the
    chain still consumes the referenced owned objects.
    """

    success: bool
    """Whether every step executed."""

    digest: str = ""
    """Transaction digest."""

    object_versions: Dict[str, int] = field(default_factory=dict)
    """New version of every referenced object."""

    created_objects: Dict[str, str] = field(default_factory=dict)
    """Created object id -> Move type."""

    failure: Optional[ChainFailure] = None
    """Failure detail if unsuccessful."""

    return_values: List[Any] = field(default_factory=list)
    """Decoded return values per step, when the gateway provides them."""

    attempts: int = 1
    """Submissions it took, including version-conflict rebuilds."""

    completed_at: datetime = field(default_factory=datetime.utcnow)

    def created_of_type(self, suffix: str) -> List[str]:
        """Ids of created objects whose type ends with suffix."""
        return [
            object_id
            for object_id, object_type in self.created_objects.items()
            if object_type.endswith(suffix)
        ]


@dataclass
class ManagerBalance:
    """Balance answer returned by DeepbookClient.check_manager_balance."""

    manager: str
    coin: str
    coin_type: str
    raw_amount: int
    amount: Decimal


PoolBookParams = Tuple[int, int, int]
"""(tick_size, lot_size, min_size) as stored on chain."""
