"""
DeepBook Client - Chain Gateway Interface.

============================================================
PURPOSE
============================================================
Abstract interface to the chain. The client never talks to a node
directly; everything goes through a ChainGateway.

FAILURE CONTRACT:
- submit() returns a TransactionOutcome for every transaction the
  chain processed or deterministically rejected, successful or not.
- NetworkTransient is raised only when the request is known not to
  have reached the chain.
- ChainTimeout is raised when the outcome is unknown. It carries the
  transaction digest when known, for wait_for_transaction().

Transaction encoding and signing are collaborators of a concrete
gateway (PlanEncoder, Signer). The client never sees key material.

============================================================
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from ..transactions.plan import TransactionPlan
from ..types import (
    ObjectState,
    Order,
    OrderPage,
    OrderSide,
    OrderStatus,
    PoolBookParams,
    PoolHandle,
    TransactionOutcome,
)


# ============================================================
# ORDER ID ENCODING
# ============================================================

_ASK_FLAG = 1 << 127
_U64_MASK = (1 << 64) - 1
_PRICE_MASK = (1 << 63) - 1

ORDER_STATUS_CODES = {
    0: OrderStatus.OPEN,
    1: OrderStatus.PARTIALLY_FILLED,
    2: OrderStatus.FILLED,
    3: OrderStatus.CANCELLED,
    4: OrderStatus.EXPIRED,
}


def encode_order_id(is_bid: bool, price: int, sequence: int) -> int:
    """Order ids embed side and price: ask flag | price << 64 | sequence."""
    order_id = (price << 64) + sequence
    if not is_bid:
        order_id += _ASK_FLAG
    return order_id


def decode_order_id(order_id: int):
    """Return (is_bid, price, sequence)."""
    is_bid = (order_id >> 127) == 0
    price = (order_id >> 64) & _PRICE_MASK
    return is_bid, price, order_id & _U64_MASK


def order_from_fields(fields: Dict[str, Any], pool_id: str) -> Order:
    """Build an Order from the decoded Move Order struct."""
    order_id = int(fields["order_id"])
    is_bid, price, _ = decode_order_id(order_id)
    expire = fields.get("expire_timestamp")
    return Order(
        order_id=order_id,
        balance_manager_id=fields["balance_manager_id"],
        pool_id=pool_id,
        side=OrderSide.BUY if is_bid else OrderSide.SELL,
        price=price,
        quantity=int(fields["quantity"]),
        filled_quantity=int(fields.get("filled_quantity", 0)),
        status=ORDER_STATUS_CODES.get(int(fields.get("status", 0)), OrderStatus.OPEN),
        client_order_id=int(fields.get("client_order_id", 0)),
        expire_timestamp=int(expire) if expire is not None else None,
    )


# ============================================================
# GATEWAY INTERFACE
# ============================================================

class ChainGateway(ABC):
    """
    Abstract base class for chain access.

    Implementations must be safe for concurrent use. Mutations are
    serialized above this layer, reads are not.
    """

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        pass

    # --------------------------------------------------------
    # CONNECTION
    # --------------------------------------------------------

    @abstractmethod
    async def connect(self) -> None:
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        pass

    # --------------------------------------------------------
    # MUTATION
    # --------------------------------------------------------

    @abstractmethod
    async def submit(self, plan: TransactionPlan) -> TransactionOutcome:
        """
        Sign and execute a plan.

        Raises:
            NetworkTransient: Request did not reach the chain
            ChainTimeout: Outcome unknown
        """
        pass

    async def wait_for_transaction(
        self,
        digest: str,
        timeout_seconds: float,
    ) -> Optional[TransactionOutcome]:
        """
        Outcome of a submitted transaction, looked up by digest.

        Used after a ChainTimeout. Returns None when the transaction is
        not found within timeout_seconds, or when the gateway cannot
        look transactions up.
        """
        return None

    # --------------------------------------------------------
    # QUERIES
    # --------------------------------------------------------

    @abstractmethod
    async def query_object(self, object_id: str) -> ObjectState:
        """Current version and decoded state of an object."""
        pass

    @abstractmethod
    async def query_open_orders(
        self,
        manager_id: str,
        pool: PoolHandle,
        cursor: Optional[str] = None,
        limit: int = 50,
    ) -> OrderPage:
        """One page of a balance manager's open orders in a pool."""
        pass

    @abstractmethod
    async def query_manager_balance(self, manager_id: str, coin_type: str) -> int:
        """Raw balance of coin_type held by a balance manager."""
        pass

    @abstractmethod
    async def query_pool_params(self, pool: PoolHandle) -> PoolBookParams:
        """(tick_size, lot_size, min_size) as stored on chain."""
        pass

    @abstractmethod
    async def query_pool_whitelisted(self, pool: PoolHandle) -> bool:
        pass


# ============================================================
# COLLABORATORS
# ============================================================

class PlanEncoder(ABC):
    """
    Native transaction encoding.

    Resolves unversioned object references and wallet coins, and
    produces base64 bytes the node accepts.
    """

    @abstractmethod
    async def encode(self, plan: TransactionPlan) -> str:
        """TransactionData bytes, base64, ready for signing."""
        pass

    @abstractmethod
    async def encode_inspect(self, plan: TransactionPlan) -> str:
        """TransactionKind bytes, base64, for dev-inspect."""
        pass

    def transaction_digest(self, tx_bytes: str) -> Optional[str]:
        """Digest of encoded TransactionData, None when not computable here."""
        return None

    @abstractmethod
    def decode_return_values(self, results: List[Dict[str, Any]]) -> List[List[Any]]:
        """Decode BCS return values per step into Python values."""
        pass


class Signer(ABC):
    """Signs encoded transactions. Key material stays behind this interface."""

    @property
    @abstractmethod
    def address(self) -> str:
        pass

    @abstractmethod
    async def sign(self, tx_bytes: str) -> List[str]:
        """Serialized signatures, base64."""
        pass
