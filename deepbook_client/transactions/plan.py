"""
DeepBook Client - Transaction Plan.

============================================================
PURPOSE
============================================================
Chain-agnostic description of one atomic transaction.

A plan is an ordered list of Move calls. Arguments are object
references, pure values, results of earlier steps in the same plan,
or coins the encoder selects from the sender's wallet.

PLAN RULES:
- A step may only consume results of steps before it.
- Every object appears with one version per plan. The plan is built
  from one consistent snapshot and never re-read mid-build.
- Owned objects carry the version the plan was built against. That
  version is the fencing token the chain checks at execution.

============================================================
"""

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Optional, Tuple, Union

from ..errors import PlanError


# ============================================================
# ARGUMENTS
# ============================================================

@dataclass(frozen=True)
class ObjectRef:
    """Reference to an on-chain object."""

    object_id: str
    """Object id."""

    version: Optional[int] = None
    """Required version for owned objects. None lets the encoder resolve it."""

    shared: bool = False
    """Shared objects are sequenced by consensus, not fenced by version."""

    mutable: bool = True


@dataclass(frozen=True)
class Pure:
    """BCS pure value."""

    value: Any
    type_tag: str
    """Move type (u8, u64, u128, bool, address, ID)."""


@dataclass(frozen=True)
class StepResult:
    """Output of an earlier step in the same plan."""

    index: int
    result_index: Optional[int] = None


@dataclass(frozen=True)
class CoinWithBalance:
    """
    Coin of exactly amount units, taken from the sender's wallet.

    With a source coin the encoder splits from it, otherwise it merges
    and splits the sender's coins of that type.
    """

    coin_type: str
    amount: int
    source: Optional[ObjectRef] = None


Argument = Union[ObjectRef, Pure, StepResult, CoinWithBalance]


# ============================================================
# STEPS
# ============================================================

@dataclass(frozen=True)
class MoveCall:
    """One Move function call."""

    package: str
    module: str
    function: str
    arguments: Tuple[Argument, ...] = ()
    type_arguments: Tuple[str, ...] = ()

    result_recipient: Optional[str] = None
    """Transfer the call's returned object to this address."""

    @property
    def target(self) -> str:
        return f"{self.package}::{self.module}::{self.function}"

    def object_refs(self) -> List[ObjectRef]:
        refs = [arg for arg in self.arguments if isinstance(arg, ObjectRef)]
        refs.extend(
            arg.source for arg in self.arguments
            if isinstance(arg, CoinWithBalance) and arg.source is not None
        )
        return refs


# ============================================================
# PLAN
# ============================================================

@dataclass
class TransactionPlan:
    """
    Ordered Move calls executed atomically.

    balance_deltas and invalidated_coins describe the effect on the
    balance manager's cached balances once the plan is confirmed.
    """

    sender: str
    """Sender address."""

    steps: List[MoveCall] = field(default_factory=list)
    """Calls in execution order."""

    gas_budget: int = 0
    """Gas budget in MIST."""

    description: str = ""
    """Logical intent, used in logs."""

    manager_name: Optional[str] = None
    """Balance manager this plan mutates."""

    manager_id: Optional[str] = None

    balance_deltas: Dict[str, int] = field(default_factory=dict)
    """Exact raw balance change per coin symbol."""

    invalidated_coins: FrozenSet[str] = frozenset()
    """Coins whose cached balance is unknown after the plan."""

    def add(self, call: MoveCall) -> StepResult:
        """Append a step and return a reference to its result."""
        self.steps.append(call)
        return StepResult(len(self.steps) - 1)

    def object_refs(self) -> Dict[str, ObjectRef]:
        """Every object the plan references, keyed by id."""
        refs: Dict[str, ObjectRef] = {}
        for call in self.steps:
            for ref in call.object_refs():
                refs.setdefault(ref.object_id, ref)
        return refs

    def version_of(self, object_id: str) -> Optional[int]:
        ref = self.object_refs().get(object_id)
        return ref.version if ref is not None else None

    def validate(self) -> None:
        """
        Check plan rules.

        Raises:
            PlanError: Empty plan, forward step reference, or an object
                referenced with two different versions
        """
        if not self.steps:
            raise PlanError(f"Plan '{self.description}' has no steps")

        seen: Dict[str, ObjectRef] = {}
        for index, call in enumerate(self.steps):
            for arg in call.arguments:
                if isinstance(arg, StepResult) and not 0 <= arg.index < index:
                    raise PlanError(
                        f"Step {index} ({call.target}) references result of step {arg.index}",
                        context={"step": index, "referenced": arg.index},
                    )
            for ref in call.object_refs():
                previous = seen.get(ref.object_id)
                if previous is None:
                    seen[ref.object_id] = ref
                elif previous.version != ref.version or previous.shared != ref.shared:
                    raise PlanError(
                        f"Object {ref.object_id} referenced at versions "
                        f"{previous.version} and {ref.version}",
                        context={"object_id": ref.object_id},
                    )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for logging."""
        return {
            "description": self.description,
            "sender": self.sender,
            "manager": self.manager_name,
            "gas_budget": self.gas_budget,
            "steps": [
                {
                    "target": call.target,
                    "type_arguments": list(call.type_arguments),
                    "arguments": [repr(arg) for arg in call.arguments],
                    "result_recipient": call.result_recipient,
                }
                for call in self.steps
            ],
        }
