"""
DeepBook Client - Governance Contract Calls.

Staking, proposals and voting. All of them live in the pool module
and require a trade proof.
"""

from ..types import PoolHandle
from .deepbook import DeepBookContract, pool_ref
from .plan import MoveCall, ObjectRef, Pure, StepResult


class GovernanceContract:
    """Governance calls into deepbook::pool."""

    def __init__(self, pool_contract: DeepBookContract):
        self._pool = pool_contract

    def stake(self, pool: PoolHandle, manager: ObjectRef, proof: StepResult, amount: int) -> MoveCall:
        return self._pool.call("stake", pool, pool_ref(pool), manager, proof, Pure(amount, "u64"))

    def unstake(self, pool: PoolHandle, manager: ObjectRef, proof: StepResult) -> MoveCall:
        return self._pool.call("unstake", pool, pool_ref(pool), manager, proof)

    def submit_proposal(
        self,
        pool: PoolHandle,
        manager: ObjectRef,
        proof: StepResult,
        taker_fee: int,
        maker_fee: int,
        stake_required: int,
    ) -> MoveCall:
        return self._pool.call(
            "submit_proposal", pool,
            pool_ref(pool),
            manager,
            proof,
            Pure(taker_fee, "u64"),
            Pure(maker_fee, "u64"),
            Pure(stake_required, "u64"),
        )

    def vote(self, pool: PoolHandle, manager: ObjectRef, proof: StepResult, proposal_id: str) -> MoveCall:
        return self._pool.call("vote", pool, pool_ref(pool), manager, proof, Pure(proposal_id, "ID"))
