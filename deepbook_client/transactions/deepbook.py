"""
DeepBook Client - Pool Contract Calls.

Move call constructors for the pool module: order placement,
cancellation, settlement and the read-only pool queries.
"""

from ..constants import CLOCK_OBJECT_ID
from ..types import OrderType, PoolHandle, SelfMatchingOption
from .plan import MoveCall, ObjectRef, Pure, StepResult


MODULE = "pool"

CLOCK = ObjectRef(CLOCK_OBJECT_ID, shared=True, mutable=False)


def pool_ref(pool: PoolHandle, mutable: bool = True) -> ObjectRef:
    return ObjectRef(pool.pool_id, shared=True, mutable=mutable)


class DeepBookContract:
    """Calls into deepbook::pool."""

    def __init__(self, package_id: str):
        self._package_id = package_id

    def call(self, function: str, pool: PoolHandle, *arguments) -> MoveCall:
        return MoveCall(
            package=self._package_id,
            module=MODULE,
            function=function,
            arguments=tuple(arguments),
            type_arguments=pool.type_arguments,
        )

    # --------------------------------------------------------
    # ORDERS
    # --------------------------------------------------------

    def place_limit_order(
        self,
        pool: PoolHandle,
        manager: ObjectRef,
        proof: StepResult,
        client_order_id: int,
        order_type: OrderType,
        self_matching_option: SelfMatchingOption,
        price: int,
        quantity: int,
        is_bid: bool,
        pay_with_deep: bool,
        expire_timestamp: int,
    ) -> MoveCall:
        return self.call(
            "place_limit_order", pool,
            pool_ref(pool),
            manager,
            proof,
            Pure(client_order_id, "u64"),
            Pure(int(order_type), "u8"),
            Pure(int(self_matching_option), "u8"),
            Pure(price, "u64"),
            Pure(quantity, "u64"),
            Pure(is_bid, "bool"),
            Pure(pay_with_deep, "bool"),
            Pure(expire_timestamp, "u64"),
            CLOCK,
        )

    def place_market_order(
        self,
        pool: PoolHandle,
        manager: ObjectRef,
        proof: StepResult,
        client_order_id: int,
        self_matching_option: SelfMatchingOption,
        quantity: int,
        is_bid: bool,
        pay_with_deep: bool,
    ) -> MoveCall:
        return self.call(
            "place_market_order", pool,
            pool_ref(pool),
            manager,
            proof,
            Pure(client_order_id, "u64"),
            Pure(int(self_matching_option), "u8"),
            Pure(quantity, "u64"),
            Pure(is_bid, "bool"),
            Pure(pay_with_deep, "bool"),
            CLOCK,
        )

    def cancel_order(self, pool: PoolHandle, manager: ObjectRef, proof: StepResult, order_id: int) -> MoveCall:
        return self.call(
            "cancel_order", pool,
            pool_ref(pool), manager, proof, Pure(order_id, "u128"), CLOCK,
        )

    def cancel_all_orders(self, pool: PoolHandle, manager: ObjectRef, proof: StepResult) -> MoveCall:
        return self.call("cancel_all_orders", pool, pool_ref(pool), manager, proof, CLOCK)

    # --------------------------------------------------------
    # SETTLEMENT
    # --------------------------------------------------------

    def withdraw_settled_amounts(self, pool: PoolHandle, manager: ObjectRef, proof: StepResult) -> MoveCall:
        return self.call("withdraw_settled_amounts", pool, pool_ref(pool), manager, proof)

    def claim_rebates(self, pool: PoolHandle, manager: ObjectRef, proof: StepResult) -> MoveCall:
        return self.call("claim_rebates", pool, pool_ref(pool), manager, proof)

    # --------------------------------------------------------
    # READS
    # --------------------------------------------------------

    def account_open_orders(self, pool: PoolHandle, manager_id: str) -> MoveCall:
        return self.call(
            "account_open_orders", pool,
            pool_ref(pool, mutable=False),
            ObjectRef(manager_id, mutable=False),
        )

    def get_order(self, pool: PoolHandle, order_id: int) -> MoveCall:
        return self.call("get_order", pool, pool_ref(pool, mutable=False), Pure(order_id, "u128"))

    def pool_book_params(self, pool: PoolHandle) -> MoveCall:
        return self.call("pool_book_params", pool, pool_ref(pool, mutable=False))

    def whitelisted(self, pool: PoolHandle) -> MoveCall:
        return self.call("whitelisted", pool, pool_ref(pool, mutable=False))
