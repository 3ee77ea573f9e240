"""
Transaction Builder Tests.

============================================================
PURPOSE
============================================================
Tests for translating intents into transaction plans.

TEST CATEGORIES:
- Balance manager plans (deposit, withdraw, trade caps)
- Order plans (limit, market, cancel, compound)
- Governance plans
- Plan validation rules

============================================================
"""

import pytest
from datetime import datetime

from deepbook_client import (
    BalanceManager,
    CachedBalance,
    ExecutionCertainty,
    InsufficientBalance,
    InvalidAmount,
    InvalidArgument,
    InvalidTickAlignment,
    MAX_TIMESTAMP,
    OrderSide,
    OrderType,
    PlanError,
    SelfMatchingOption,
    TransactionBuilder,
    UnknownCoin,
    UnknownPool,
)
from deepbook_client.constants import TESTNET_COINS
from deepbook_client.transactions import (
    CoinWithBalance,
    MoveCall,
    ObjectRef,
    Pure,
    StepResult,
    TransactionPlan,
)


MANAGER_ID = "0x" + "1" * 64
TRADE_CAP_ID = "0x" + "c" * 64
RECIPIENT = "0x" + "b" * 64

SUI_TYPE = TESTNET_COINS["SUI"].coin_type
DBUSDC_TYPE = TESTNET_COINS["DBUSDC"].coin_type


@pytest.fixture
def builder(config, coins, pools) -> TransactionBuilder:
    return TransactionBuilder(config, coins, pools)


@pytest.fixture
def manager() -> BalanceManager:
    return BalanceManager(name="M1", object_id=MANAGER_ID, version=5)


def manager_refs(plan):
    return [
        arg for call in plan.steps for arg in call.arguments
        if isinstance(arg, ObjectRef) and arg.object_id == MANAGER_ID
    ]


# ============================================================
# BALANCE MANAGER PLANS
# ============================================================

class TestBalanceManagerPlans:
    """Tests for deposit / withdraw / trade cap plans."""

    def test_deposit(self, builder, manager):
        """Test that a deposit is one step at the snapshot version."""
        plan = builder.deposit(manager, "DBUSDC", "1.50")

        assert len(plan.steps) == 1
        call = plan.steps[0]
        assert call.module == "balance_manager"
        assert call.function == "deposit"
        assert call.type_arguments == (DBUSDC_TYPE,)
        assert call.arguments[0] == ObjectRef(MANAGER_ID, version=5)
        assert call.arguments[1] == CoinWithBalance(DBUSDC_TYPE, 1_500_000)
        assert plan.balance_deltas == {"DBUSDC": 1_500_000}
        assert plan.manager_id == MANAGER_ID
        assert plan.manager_name == "M1"

    def test_deposit_from_source_coin(self, builder, manager):
        """Test that a source coin becomes a referenced object."""
        source = ObjectRef("0x" + "5" * 64)

        plan = builder.deposit(manager, "SUI", 1, source_coin=source)

        assert source.object_id in plan.object_refs()

    def test_deposit_unknown_coin(self, builder, manager):
        """Test that unknown coins fail before a plan exists."""
        with pytest.raises(UnknownCoin):
            builder.deposit(manager, "NOPE", 1)

    def test_deposit_invalid_amount(self, builder, manager):
        """Test that non-positive amounts fail."""
        with pytest.raises(InvalidAmount):
            builder.deposit(manager, "SUI", "-1")

    def test_withdraw(self, builder, manager):
        """Test a withdrawal plan."""
        plan = builder.withdraw(manager, "DBUSDC", "1.50", recipient=RECIPIENT)

        call = plan.steps[0]
        assert call.function == "withdraw"
        assert call.arguments[1] == Pure(1_500_000, "u64")
        assert call.result_recipient == RECIPIENT
        assert plan.balance_deltas == {"DBUSDC": -1_500_000}

    def test_withdraw_defaults_to_sender(self, builder, manager, config):
        """Test that withdrawals go to the sender by default."""
        plan = builder.withdraw(manager, "DBUSDC", 1)

        assert plan.steps[0].result_recipient == config.address

    def test_withdraw_more_than_fresh_cache(self, builder, manager):
        """Test the optimistic local balance check."""
        manager.balances["DBUSDC"] = CachedBalance(amount=1_000_000, fetched_at=datetime.utcnow())

        with pytest.raises(InsufficientBalance) as exc_info:
            builder.withdraw(manager, "DBUSDC", "1.50")

        assert exc_info.value.available == 1_000_000
        assert exc_info.value.certainty == ExecutionCertainty.NOT_SUBMITTED

    def test_withdraw_with_stale_cache_builds(self, builder, manager):
        """Test that a stale cache does not block the withdrawal."""
        manager.balances["DBUSDC"] = CachedBalance(amount=0, fetched_at=datetime.utcnow(), stale=True)

        plan = builder.withdraw(manager, "DBUSDC", "1.50")

        assert plan.balance_deltas == {"DBUSDC": -1_500_000}

    def test_withdraw_bad_recipient(self, builder, manager):
        """Test that recipients must be addresses."""
        with pytest.raises(InvalidArgument):
            builder.withdraw(manager, "SUI", 1, recipient="alice")

    def test_withdraw_all_invalidates_coin(self, builder, manager):
        """Test that withdraw_all has no exact delta."""
        plan = builder.withdraw_all(manager, "SUI")

        assert plan.steps[0].function == "withdraw_all"
        assert plan.balance_deltas == {}
        assert plan.invalidated_coins == frozenset({"SUI"})

    def test_mint_trade_cap(self, builder, manager):
        """Test that the minted cap is sent to the recipient."""
        plan = builder.mint_and_transfer_trade_cap(manager, RECIPIENT)

        assert plan.steps[0].function == "mint_trade_cap"
        assert plan.steps[0].result_recipient == RECIPIENT

    def test_create_and_share(self, builder):
        """Test that creation shares the new object in the same plan."""
        plan = builder.create_and_share_balance_manager()

        assert [call.function for call in plan.steps] == ["new", "public_share_object"]
        assert plan.steps[1].arguments == (StepResult(0),)
        assert plan.manager_id is None


# ============================================================
# ORDER PLANS
# ============================================================

class TestOrderPlans:
    """Tests for order placement and cancellation plans."""

    def test_limit_order(self, builder, manager):
        """Test a limit order plan with its trade proof."""
        plan = builder.place_limit_order(
            manager, "SUI_DBUSDC", OrderSide.BUY, "2.5", "1.5",
            order_type=OrderType.POST_ONLY,
            client_order_id=42,
        )

        assert [call.function for call in plan.steps] == ["generate_proof_as_owner", "place_limit_order"]
        place = plan.steps[1]
        assert place.type_arguments == (SUI_TYPE, DBUSDC_TYPE)
        assert place.arguments[1] == ObjectRef(MANAGER_ID, version=5)
        assert place.arguments[2] == StepResult(0)
        assert place.arguments[3] == Pure(42, "u64")
        assert place.arguments[4] == Pure(int(OrderType.POST_ONLY), "u8")
        assert place.arguments[5] == Pure(int(SelfMatchingOption.SELF_MATCHING_ALLOWED), "u8")
        assert place.arguments[6] == Pure(2_500_000, "u64")
        assert place.arguments[7] == Pure(1_500_000_000, "u64")
        assert place.arguments[8] == Pure(True, "bool")
        assert place.arguments[10] == Pure(MAX_TIMESTAMP, "u64")
        assert plan.invalidated_coins == frozenset({"SUI", "DBUSDC", "DEEP"})

    def test_limit_order_as_trader(self, builder, manager):
        """Test that a configured trade cap switches to a trader proof."""
        manager.trade_cap = TRADE_CAP_ID

        plan = builder.place_limit_order(manager, "SUI_DBUSDC", OrderSide.SELL, "2.5", "1.5")

        proof = plan.steps[0]
        assert proof.function == "generate_proof_as_trader"
        assert proof.arguments[1] == ObjectRef(TRADE_CAP_ID, mutable=False)
        assert plan.steps[1].arguments[8] == Pure(False, "bool")

    def test_off_tick_price(self, builder, manager):
        """Test that 10.005 on a 0.01 tick fails before any plan exists."""
        with pytest.raises(InvalidTickAlignment):
            builder.place_limit_order(manager, "SUI_DBUSDC", OrderSide.BUY, "10.005", "1")

    def test_unknown_pool(self, builder, manager):
        """Test that unknown pools fail."""
        with pytest.raises(UnknownPool):
            builder.place_limit_order(manager, "SUI_NOPE", OrderSide.BUY, "1", "1")

    @pytest.mark.parametrize("kwargs", [
        {"expiration": 0},
        {"client_order_id": -1},
        {"client_order_id": 2 ** 64},
        {"client_order_id": 1.5},
    ])
    def test_limit_order_argument_ranges(self, builder, manager, kwargs):
        """Test that out-of-range integer arguments are rejected."""
        with pytest.raises(InvalidArgument):
            builder.place_limit_order(manager, "SUI_DBUSDC", OrderSide.BUY, "2.5", "1.5", **kwargs)

    def test_deposit_and_place(self, builder, manager):
        """Test that the compound plan orders deposit before the order."""
        plan = builder.deposit_and_place_limit_order(
            manager, "SUI_DBUSDC", OrderSide.BUY, "2.5", "1.5",
            deposit_coin="DBUSDC", deposit_amount="3.75",
        )

        assert [call.function for call in plan.steps] == [
            "deposit", "generate_proof_as_owner", "place_limit_order",
        ]
        assert plan.steps[2].arguments[2] == StepResult(1)
        assert {ref.version for ref in manager_refs(plan)} == {5}
        assert "DBUSDC" in plan.invalidated_coins

    def test_market_order(self, builder, manager):
        """Test a market order plan."""
        plan = builder.place_market_order(manager, "SUI_DBUSDC", OrderSide.SELL, "2")

        place = plan.steps[1]
        assert place.function == "place_market_order"
        assert place.arguments[5] == Pure(2_000_000_000, "u64")
        assert place.arguments[6] == Pure(False, "bool")

    def test_cancel_order(self, builder, manager):
        """Test that cancel carries the u128 order id."""
        order_id = (1 << 127) + (2_500_000 << 64) + 7

        plan = builder.cancel_order(manager, "SUI_DBUSDC", order_id)

        assert plan.steps[1].function == "cancel_order"
        assert plan.steps[1].arguments[3] == Pure(order_id, "u128")

    def test_cancel_order_id_out_of_range(self, builder, manager):
        """Test that order ids must fit in u128."""
        with pytest.raises(InvalidArgument):
            builder.cancel_order(manager, "SUI_DBUSDC", 2 ** 128)

    @pytest.mark.parametrize("method", ["cancel_all_orders", "withdraw_settled_amounts", "claim_rebates"])
    def test_proof_calls(self, builder, manager, method):
        """Test the pool calls that only need a proof."""
        plan = getattr(builder, method)(manager, "SUI_DBUSDC")

        assert [call.function for call in plan.steps] == ["generate_proof_as_owner", method]


# ============================================================
# GOVERNANCE PLANS
# ============================================================

class TestGovernancePlans:
    """Tests for staking and proposals."""

    def test_stake(self, builder, manager):
        """Test that staking debits DEEP exactly."""
        plan = builder.stake(manager, "DEEP_SUI", "1")

        assert plan.steps[1].function == "stake"
        assert plan.steps[1].arguments[3] == Pure(1_000_000, "u64")
        assert plan.balance_deltas == {"DEEP": -1_000_000}

    def test_unstake(self, builder, manager):
        """Test that unstaking invalidates DEEP."""
        plan = builder.unstake(manager, "DEEP_SUI")

        assert plan.invalidated_coins == frozenset({"DEEP"})

    def test_submit_proposal(self, builder, manager):
        """Test fee scaling in proposals."""
        plan = builder.submit_proposal(manager, "DEEP_SUI", "0.001", "0.0005", "100")

        args = plan.steps[1].arguments
        assert args[3] == Pure(1_000_000, "u64")
        assert args[4] == Pure(500_000, "u64")
        assert args[5] == Pure(100_000_000, "u64")

    def test_submit_proposal_bad_fee(self, builder, manager):
        """Test that fees must be below 1."""
        with pytest.raises(InvalidAmount):
            builder.submit_proposal(manager, "DEEP_SUI", "1.5", "0", "1")

    def test_vote(self, builder, manager):
        """Test that the proposal id is passed as an ID."""
        proposal = "0x" + "d" * 64

        plan = builder.vote(manager, "DEEP_SUI", proposal)

        assert plan.steps[1].arguments[3] == Pure(proposal, "ID")

    def test_vote_bad_proposal_id(self, builder, manager):
        """Test that proposal ids must be object ids."""
        with pytest.raises(InvalidArgument):
            builder.vote(manager, "DEEP_SUI", "proposal-1")


# ============================================================
# PLAN VALIDATION
# ============================================================

class TestPlanValidation:
    """Tests for TransactionPlan.validate."""

    def call(self, *arguments) -> MoveCall:
        return MoveCall(package="0x1", module="m", function="f", arguments=arguments)

    def test_empty_plan(self):
        """Test that empty plans are rejected."""
        with pytest.raises(PlanError):
            TransactionPlan(sender=RECIPIENT).validate()

    def test_forward_reference(self):
        """Test that a step cannot consume a later result."""
        plan = TransactionPlan(sender=RECIPIENT)
        plan.add(self.call(StepResult(1)))
        plan.add(self.call())

        with pytest.raises(PlanError):
            plan.validate()

    def test_self_reference(self):
        """Test that a step cannot consume its own result."""
        plan = TransactionPlan(sender=RECIPIENT)
        plan.add(self.call(StepResult(0)))

        with pytest.raises(PlanError):
            plan.validate()

    def test_conflicting_versions(self):
        """Test that one object cannot appear at two versions."""
        plan = TransactionPlan(sender=RECIPIENT)
        plan.add(self.call(ObjectRef(MANAGER_ID, version=5)))
        plan.add(self.call(ObjectRef(MANAGER_ID, version=6)))

        with pytest.raises(PlanError):
            plan.validate()

    def test_valid_plan(self):
        """Test a well-formed plan."""
        plan = TransactionPlan(sender=RECIPIENT)
        first = plan.add(self.call(ObjectRef(MANAGER_ID, version=5)))
        plan.add(self.call(ObjectRef(MANAGER_ID, version=5), first))

        plan.validate()

        assert plan.version_of(MANAGER_ID) == 5
        assert plan.to_dict()["steps"][1]["target"] == "0x1::m::f"
