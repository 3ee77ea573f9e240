"""
DeepBook Client - Transaction Builder.

============================================================
PURPOSE
============================================================
Translate one logical intent into one TransactionPlan.

BUILD RULES:
- Validate everything before returning a plan: coins and pools
  resolve, amounts scale exactly, arguments are in range.
- Every reference to the balance manager in a plan uses the version
  of the snapshot passed in. The builder never reads the store.
- Trading calls are preceded by a trade proof step.
- Compound intents are one plan, so they commit atomically.

============================================================
"""

import logging
from typing import FrozenSet, Iterable, Optional, Tuple

from ..config import DeepbookConfig, is_object_id
from ..constants import MAX_TIMESTAMP
from ..errors import InsufficientBalance, InvalidArgument
from ..registry import CoinRegistry, PoolRegistry
from ..scaling import AmountScaler, HumanAmount
from ..types import (
    BalanceManager,
    OrderSide,
    OrderType,
    PoolHandle,
    PoolMetadata,
    SelfMatchingOption,
)
from .balance_manager import BalanceManagerContract, manager_ref
from .deepbook import DeepBookContract
from .governance import GovernanceContract
from .plan import ObjectRef, StepResult, TransactionPlan


logger = logging.getLogger(__name__)


U64_MAX = 2 ** 64 - 1
U128_MAX = 2 ** 128 - 1


def _check_int(name: str, value, low: int, high: int) -> int:
    if isinstance(value, bool):
        raise InvalidArgument(name, "must be an integer", value)
    try:
        number = int(value)
    except (TypeError, ValueError) as e:
        raise InvalidArgument(name, "must be an integer", value) from e
    if isinstance(value, float) and number != value:
        raise InvalidArgument(name, "must be an integer", value)
    if not low <= number <= high:
        raise InvalidArgument(name, f"must be within [{low}, {high}]", value)
    return number


class TransactionBuilder:
    """
    Builds transaction plans for the DeepBook contracts.

    Stateless apart from the registries it reads. Safe to share.
    """

    def __init__(
        self,
        config: DeepbookConfig,
        coins: CoinRegistry,
        pools: PoolRegistry,
        scaler: Optional[AmountScaler] = None,
    ):
        self._config = config
        self._coins = coins
        self._pools = pools
        self._scaler = scaler or AmountScaler(coins, pools)

        package_id = config.package_ids.deepbook_package_id
        self.balance_manager = BalanceManagerContract(package_id)
        self.deepbook = DeepBookContract(package_id)
        self.governance = GovernanceContract(self.deepbook)

    @property
    def scaler(self) -> AmountScaler:
        return self._scaler

    # --------------------------------------------------------
    # HELPERS
    # --------------------------------------------------------

    def _plan(
        self,
        description: str,
        manager: Optional[BalanceManager] = None,
        invalidated: Iterable[str] = (),
    ) -> TransactionPlan:
        return TransactionPlan(
            sender=self._config.address,
            gas_budget=self._config.gas_budget,
            description=description,
            manager_name=manager.name if manager else None,
            manager_id=manager.object_id if manager else None,
            invalidated_coins=frozenset(invalidated),
        )

    def _finish(self, plan: TransactionPlan) -> TransactionPlan:
        plan.validate()
        logger.debug(
            f"Built plan '{plan.description}': "
            f"{[call.target for call in plan.steps]}"
        )
        return plan

    def _pool(self, pool_key: str) -> Tuple[PoolMetadata, PoolHandle]:
        pool = self._pools.resolve_pool(pool_key)
        return pool, self._pools.handle(pool)

    def _pool_coins(self, pool: PoolMetadata) -> FrozenSet[str]:
        return frozenset({pool.base_coin, pool.quote_coin, "DEEP"} & set(self._coins.snapshot()))

    def _proof(self, plan: TransactionPlan, manager: BalanceManager, ref: ObjectRef) -> StepResult:
        return plan.add(self.balance_manager.generate_proof(manager, ref))

    def _recipient(self, recipient: Optional[str]) -> str:
        address = recipient or self._config.address
        if not is_object_id(address):
            raise InvalidArgument("recipient", "must be a 0x-prefixed address", address)
        return address

    # --------------------------------------------------------
    # BALANCE MANAGER
    # --------------------------------------------------------

    def create_and_share_balance_manager(self) -> TransactionPlan:
        plan = self._plan("create_and_share_balance_manager")
        manager = plan.add(self.balance_manager.new())
        plan.add(self.balance_manager.share(manager))
        return self._finish(plan)

    def deposit(
        self,
        manager: BalanceManager,
        coin: str,
        amount: HumanAmount,
        source_coin: Optional[ObjectRef] = None,
    ) -> TransactionPlan:
        """Deposit amount of coin from the sender's wallet."""
        metadata = self._coins.resolve(coin)
        raw_amount = self._scaler.to_chain_amount(amount, metadata)

        plan = self._plan(f"deposit {amount} {coin} into {manager.name}", manager)
        plan.add(self.balance_manager.deposit(manager_ref(manager), metadata, raw_amount, source_coin))
        plan.balance_deltas = {coin: raw_amount}
        return self._finish(plan)

    def withdraw(
        self,
        manager: BalanceManager,
        coin: str,
        amount: HumanAmount,
        recipient: Optional[str] = None,
    ) -> TransactionPlan:
        """
        Withdraw amount of coin to recipient (default the sender).

        Raises:
            InsufficientBalance: A fresh cached balance is below the amount
        """
        metadata = self._coins.resolve(coin)
        raw_amount = self._scaler.to_chain_amount(amount, metadata)
        address = self._recipient(recipient)

        cached = manager.balances.get(coin)
        if cached is not None and not cached.stale and cached.amount < raw_amount:
            raise InsufficientBalance(manager.name, coin, raw_amount, cached.amount)

        plan = self._plan(f"withdraw {amount} {coin} from {manager.name}", manager)
        plan.add(self.balance_manager.withdraw(manager_ref(manager), metadata, raw_amount, address))
        plan.balance_deltas = {coin: -raw_amount}
        return self._finish(plan)

    def withdraw_all(
        self,
        manager: BalanceManager,
        coin: str,
        recipient: Optional[str] = None,
    ) -> TransactionPlan:
        metadata = self._coins.resolve(coin)
        address = self._recipient(recipient)
        plan = self._plan(f"withdraw all {coin} from {manager.name}", manager, invalidated=[coin])
        plan.add(self.balance_manager.withdraw_all(manager_ref(manager), metadata, address))
        return self._finish(plan)

    def mint_and_transfer_trade_cap(
        self,
        manager: BalanceManager,
        recipient: str,
    ) -> TransactionPlan:
        address = self._recipient(recipient)
        plan = self._plan(f"mint trade cap of {manager.name} for {address}", manager)
        plan.add(self.balance_manager.mint_trade_cap(manager_ref(manager), address))
        return self._finish(plan)

    # --------------------------------------------------------
    # ORDERS
    # --------------------------------------------------------

    def _add_limit_order(
        self,
        plan: TransactionPlan,
        manager: BalanceManager,
        ref: ObjectRef,
        pool_key: str,
        side: OrderSide,
        price: HumanAmount,
        quantity: HumanAmount,
        order_type: OrderType,
        expiration: int,
        client_order_id: int,
        self_matching_option: SelfMatchingOption,
        pay_with_deep: bool,
    ) -> None:
        pool, handle = self._pool(pool_key)
        chain_price = self._scaler.to_chain_price(price, pool)
        chain_quantity = self._scaler.to_chain_quantity(quantity, pool)
        expire_timestamp = _check_int("expiration", expiration, 1, MAX_TIMESTAMP)
        client_id = _check_int("client_order_id", client_order_id, 0, U64_MAX)

        proof = self._proof(plan, manager, ref)
        plan.add(self.deepbook.place_limit_order(
            handle, ref, proof,
            client_order_id=client_id,
            order_type=OrderType(order_type),
            self_matching_option=SelfMatchingOption(self_matching_option),
            price=chain_price,
            quantity=chain_quantity,
            is_bid=OrderSide(side).is_bid,
            pay_with_deep=bool(pay_with_deep),
            expire_timestamp=expire_timestamp,
        ))
        plan.invalidated_coins = plan.invalidated_coins | self._pool_coins(pool)

    def place_limit_order(
        self,
        manager: BalanceManager,
        pool: str,
        side: OrderSide,
        price: HumanAmount,
        quantity: HumanAmount,
        order_type: OrderType = OrderType.NO_RESTRICTION,
        expiration: int = MAX_TIMESTAMP,
        client_order_id: int = 0,
        self_matching_option: SelfMatchingOption = SelfMatchingOption.SELF_MATCHING_ALLOWED,
        pay_with_deep: bool = True,
    ) -> TransactionPlan:
        """
        Place a limit order.

        order_type is the time in force. expiration is in milliseconds.

        Raises:
            UnknownPool, InvalidAmount, PrecisionLoss, InvalidTickAlignment,
            InvalidLotAlignment, BelowMinimumSize, InvalidArgument
        """
        plan = self._plan(f"{OrderSide(side).value} {quantity} @ {price} on {pool}", manager)
        self._add_limit_order(
            plan, manager, manager_ref(manager), pool, side, price, quantity,
            order_type, expiration, client_order_id, self_matching_option, pay_with_deep,
        )
        return self._finish(plan)

    def deposit_and_place_limit_order(
        self,
        manager: BalanceManager,
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
    ) -> TransactionPlan:
        """Deposit and place a limit order in one atomic plan."""
        metadata = self._coins.resolve(deposit_coin)
        raw_amount = self._scaler.to_chain_amount(deposit_amount, metadata)

        plan = self._plan(
            f"deposit {deposit_amount} {deposit_coin} then "
            f"{OrderSide(side).value} {quantity} @ {price} on {pool}",
            manager,
            invalidated=[deposit_coin],
        )
        ref = manager_ref(manager)
        plan.add(self.balance_manager.deposit(ref, metadata, raw_amount))
        self._add_limit_order(
            plan, manager, ref, pool, side, price, quantity,
            order_type, expiration, client_order_id, self_matching_option, pay_with_deep,
        )
        return self._finish(plan)

    def place_market_order(
        self,
        manager: BalanceManager,
        pool: str,
        side: OrderSide,
        quantity: HumanAmount,
        client_order_id: int = 0,
        self_matching_option: SelfMatchingOption = SelfMatchingOption.SELF_MATCHING_ALLOWED,
        pay_with_deep: bool = True,
    ) -> TransactionPlan:
        metadata, handle = self._pool(pool)
        chain_quantity = self._scaler.to_chain_quantity(quantity, metadata)
        client_id = _check_int("client_order_id", client_order_id, 0, U64_MAX)

        plan = self._plan(
            f"market {OrderSide(side).value} {quantity} on {pool}",
            manager,
            invalidated=self._pool_coins(metadata),
        )
        ref = manager_ref(manager)
        proof = self._proof(plan, manager, ref)
        plan.add(self.deepbook.place_market_order(
            handle, ref, proof,
            client_order_id=client_id,
            self_matching_option=SelfMatchingOption(self_matching_option),
            quantity=chain_quantity,
            is_bid=OrderSide(side).is_bid,
            pay_with_deep=bool(pay_with_deep),
        ))
        return self._finish(plan)

    def cancel_order(self, manager: BalanceManager, pool: str, order_id: int) -> TransactionPlan:
        """
        Cancel one order.

        No local precondition. The chain reports orders that are gone.
        """
        metadata, handle = self._pool(pool)
        chain_order_id = _check_int("order_id", order_id, 0, U128_MAX)

        plan = self._plan(
            f"cancel order {chain_order_id} on {pool}",
            manager,
            invalidated=self._pool_coins(metadata),
        )
        ref = manager_ref(manager)
        proof = self._proof(plan, manager, ref)
        plan.add(self.deepbook.cancel_order(handle, ref, proof, chain_order_id))
        return self._finish(plan)

    def _proof_call(self, manager: BalanceManager, pool: str, function: str, invalidate: bool = True) -> TransactionPlan:
        metadata, handle = self._pool(pool)
        plan = self._plan(
            f"{function} on {pool}",
            manager,
            invalidated=self._pool_coins(metadata) if invalidate else (),
        )
        ref = manager_ref(manager)
        proof = self._proof(plan, manager, ref)
        plan.add(getattr(self.deepbook, function)(handle, ref, proof))
        return self._finish(plan)

    def cancel_all_orders(self, manager: BalanceManager, pool: str) -> TransactionPlan:
        return self._proof_call(manager, pool, "cancel_all_orders")

    def withdraw_settled_amounts(self, manager: BalanceManager, pool: str) -> TransactionPlan:
        return self._proof_call(manager, pool, "withdraw_settled_amounts")

    def claim_rebates(self, manager: BalanceManager, pool: str) -> TransactionPlan:
        return self._proof_call(manager, pool, "claim_rebates")

    # --------------------------------------------------------
    # GOVERNANCE
    # --------------------------------------------------------

    def stake(self, manager: BalanceManager, pool: str, amount: HumanAmount) -> TransactionPlan:
        """Stake DEEP in a pool."""
        _, handle = self._pool(pool)
        raw_amount = self._scaler.to_chain_amount(amount, "DEEP")

        plan = self._plan(f"stake {amount} DEEP on {pool}", manager)
        ref = manager_ref(manager)
        proof = self._proof(plan, manager, ref)
        plan.add(self.governance.stake(handle, ref, proof, raw_amount))
        plan.balance_deltas = {"DEEP": -raw_amount}
        return self._finish(plan)

    def unstake(self, manager: BalanceManager, pool: str) -> TransactionPlan:
        _, handle = self._pool(pool)
        plan = self._plan(f"unstake on {pool}", manager, invalidated=["DEEP"])
        ref = manager_ref(manager)
        proof = self._proof(plan, manager, ref)
        plan.add(self.governance.unstake(handle, ref, proof))
        return self._finish(plan)

    def submit_proposal(
        self,
        manager: BalanceManager,
        pool: str,
        taker_fee: HumanAmount,
        maker_fee: HumanAmount,
        stake_required: HumanAmount,
    ) -> TransactionPlan:
        """
        Propose new trading fees.

        Fees are fractions in [0, 1). stake_required is a DEEP amount.
        """
        _, handle = self._pool(pool)
        chain_taker_fee = self._scaler.to_chain_rate(taker_fee)
        chain_maker_fee = self._scaler.to_chain_rate(maker_fee)
        chain_stake = self._scaler.to_chain_amount(stake_required, "DEEP")

        plan = self._plan(f"submit proposal on {pool}", manager)
        ref = manager_ref(manager)
        proof = self._proof(plan, manager, ref)
        plan.add(self.governance.submit_proposal(
            handle, ref, proof,
            taker_fee=chain_taker_fee,
            maker_fee=chain_maker_fee,
            stake_required=chain_stake,
        ))
        return self._finish(plan)

    def vote(self, manager: BalanceManager, pool: str, proposal_id: str) -> TransactionPlan:
        _, handle = self._pool(pool)
        if not is_object_id(proposal_id):
            raise InvalidArgument("proposal_id", "must be an object id", proposal_id)

        plan = self._plan(f"vote {proposal_id} on {pool}", manager)
        ref = manager_ref(manager)
        proof = self._proof(plan, manager, ref)
        plan.add(self.governance.vote(handle, ref, proof, proposal_id))
        return self._finish(plan)
