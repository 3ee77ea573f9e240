"""
DeepBook Client - Balance Manager Contract Calls.

Move call constructors for the balance_manager module.
"""

from typing import Optional

from ..types import BalanceManager, CoinMetadata
from .plan import CoinWithBalance, MoveCall, ObjectRef, Pure, StepResult


MODULE = "balance_manager"
BALANCE_MANAGER_TYPE_SUFFIX = "::balance_manager::BalanceManager"
TRADE_CAP_TYPE_SUFFIX = "::balance_manager::TradeCap"

SUI_FRAMEWORK = "0x2"


def manager_ref(manager: BalanceManager) -> ObjectRef:
    """Fenced reference at the manager's snapshot version."""
    return ObjectRef(manager.object_id, version=manager.version)


class BalanceManagerContract:
    """Calls into deepbook::balance_manager."""

    def __init__(self, package_id: str):
        self._package_id = package_id

    @property
    def balance_manager_type(self) -> str:
        return f"{self._package_id}{BALANCE_MANAGER_TYPE_SUFFIX}"

    def _call(self, function: str, *arguments, type_arguments=(), result_recipient=None) -> MoveCall:
        return MoveCall(
            package=self._package_id,
            module=MODULE,
            function=function,
            arguments=tuple(arguments),
            type_arguments=tuple(type_arguments),
            result_recipient=result_recipient,
        )

    # --------------------------------------------------------
    # LIFECYCLE
    # --------------------------------------------------------

    def new(self) -> MoveCall:
        return self._call("new")

    def share(self, manager: StepResult) -> MoveCall:
        return MoveCall(
            package=SUI_FRAMEWORK,
            module="transfer",
            function="public_share_object",
            arguments=(manager,),
            type_arguments=(self.balance_manager_type,),
        )

    def mint_trade_cap(self, ref: ObjectRef, recipient: str) -> MoveCall:
        return self._call("mint_trade_cap", ref, result_recipient=recipient)

    # --------------------------------------------------------
    # FUNDS
    # --------------------------------------------------------

    def deposit(
        self,
        ref: ObjectRef,
        coin: CoinMetadata,
        amount: int,
        source: Optional[ObjectRef] = None,
    ) -> MoveCall:
        return self._call(
            "deposit",
            ref,
            CoinWithBalance(coin.coin_type, amount, source),
            type_arguments=(coin.coin_type,),
        )

    def withdraw(self, ref: ObjectRef, coin: CoinMetadata, amount: int, recipient: str) -> MoveCall:
        return self._call(
            "withdraw",
            ref,
            Pure(amount, "u64"),
            type_arguments=(coin.coin_type,),
            result_recipient=recipient,
        )

    def withdraw_all(self, ref: ObjectRef, coin: CoinMetadata, recipient: str) -> MoveCall:
        return self._call(
            "withdraw_all",
            ref,
            type_arguments=(coin.coin_type,),
            result_recipient=recipient,
        )

    # --------------------------------------------------------
    # PROOFS
    # --------------------------------------------------------

    def generate_proof(self, manager: BalanceManager, ref: ObjectRef) -> MoveCall:
        """Owner proof, or trader proof when the manager has a trade cap."""
        if manager.trade_cap:
            return self._call("generate_proof_as_trader", ref, ObjectRef(manager.trade_cap, mutable=False))
        return self._call("generate_proof_as_owner", ref)

    # --------------------------------------------------------
    # READS
    # --------------------------------------------------------

    def balance(self, manager_id: str, coin_type: str) -> MoveCall:
        return self._call(
            "balance",
            ObjectRef(manager_id, mutable=False),
            type_arguments=(coin_type,),
        )
