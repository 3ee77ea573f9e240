"""
DeepBook Client - Mutation Sequencer.

============================================================
PURPOSE
============================================================
At most one mutating plan in flight per balance manager.

CRITICAL PRINCIPLE:
    "Plan N+1 is built from the version plan N produced."

ALGORITHM:
1. Build once from the current snapshot to validate. Invalid
   requests fail here and never wait or touch the chain.
2. Wait on the manager's gate (FIFO). Abandoning the request while
   waiting has no side effects.
3. Once admitted the request runs to completion even if the caller
   is cancelled: submit, then apply the outcome to the store, then
   release the gate.
4. If the stored version is unknown, refetch it from the chain.
5. Build from the snapshot, check the fencing token, submit.
6. On a version conflict refetch the version and rebuild, bounded by
   RetryConfig.max_version_conflict_attempts.
7. On a timeout look the transaction up by digest while still holding
   the gate. If it is not found mark the version unknown and surface
   ChainTimeout.

Managers are independent: different gates, no ordering between them.

============================================================
"""

import asyncio
import logging
from typing import Callable, Dict, Optional

from .config import RetryConfig, TimeoutConfig
from .errors import ChainTimeout, DeepbookError, PlanError
from .gateway.base import ChainGateway
from .gateway.errors import error_from_failure
from .retry import with_retries
from .store import BalanceManagerStore
from .transactions.plan import TransactionPlan
from .types import BalanceManager, TransactionOutcome


logger = logging.getLogger(__name__)


BuildFn = Callable[[BalanceManager], TransactionPlan]


def _consume_result(task: "asyncio.Future") -> None:
    # Admitted work outlives a cancelled caller. Its exception was
    # already logged, retrieve it so asyncio does not warn.
    if not task.cancelled():
        task.exception()


class MutationSequencer:
    """Per balance manager serialization gate with version-conflict retry."""

    def __init__(
        self,
        store: BalanceManagerStore,
        gateway: ChainGateway,
        retry_config: Optional[RetryConfig] = None,
        timeout_config: Optional[TimeoutConfig] = None,
    ):
        self._store = store
        self._gateway = gateway
        self._retry = retry_config or RetryConfig()
        self._timeouts = timeout_config or TimeoutConfig()
        self._gates: Dict[str, asyncio.Lock] = {}

    def _gate(self, manager_name: str) -> asyncio.Lock:
        gate = self._gates.get(manager_name)
        if gate is None:
            gate = asyncio.Lock()
            self._gates[manager_name] = gate
        return gate

    def is_busy(self, manager_name: str) -> bool:
        """Whether a mutation for this manager is admitted."""
        gate = self._gates.get(manager_name)
        return gate is not None and gate.locked()

    # --------------------------------------------------------
    # ENTRY POINTS
    # --------------------------------------------------------

    async def execute(self, manager_name: str, build: BuildFn) -> TransactionOutcome:
        """
        Build, sequence, submit and apply a plan for one balance manager.

        Args:
            manager_name: Logical name in the store
            build: Builds a plan from a manager snapshot. Called once for
                validation and again for every submission attempt.

        Returns:
            The successful outcome

        Raises:
            Validation errors from build, before any waiting
            ObjectVersionConflict: Conflict bound exceeded
            ChainTimeout: Outcome unknown
            NetworkTransient: Retries exhausted
            ChainExecutionError, InsufficientBalance: Chain rejected the plan
        """
        build(self._store.get(manager_name))

        gate = self._gate(manager_name)
        await gate.acquire()
        self._store.begin_mutation(manager_name)

        task = asyncio.ensure_future(self._run_admitted(manager_name, build, gate))
        task.add_done_callback(_consume_result)
        return await asyncio.shield(task)

    async def submit_detached(self, plan: TransactionPlan) -> TransactionOutcome:
        """
        Submit a plan that touches no registered balance manager.

        Used for creating new managers. Only NetworkTransient is retried.
        """
        outcome = await with_retries(
            lambda: self._gateway.submit(plan),
            self._retry,
            f"Submit '{plan.description}'",
        )
        if not outcome.success:
            error = error_from_failure(outcome.failure, outcome.digest)
            logger.error(f"'{plan.description}' rejected: {error}")
            raise error
        logger.info(f"'{plan.description}' confirmed ({outcome.digest})")
        return outcome

    # --------------------------------------------------------
    # ADMITTED EXECUTION
    # --------------------------------------------------------

    async def _run_admitted(
        self,
        manager_name: str,
        build: BuildFn,
        gate: asyncio.Lock,
    ) -> TransactionOutcome:
        try:
            return await self._execute_with_conflicts(manager_name, build)
        except DeepbookError as e:
            logger.debug(f"Balance manager {manager_name}: mutation failed: {e.to_dict()}")
            raise
        finally:
            gate.release()

    async def _refetch_version(self, manager: BalanceManager) -> int:
        state = await with_retries(
            lambda: self._gateway.query_object(manager.object_id),
            self._retry,
            f"Refetch version of {manager.name}",
        )
        logger.info(
            f"Balance manager {manager.name}: refetched version {state.version} "
            f"(stored {manager.version})"
        )
        return state.version

    async def _resolve_unknown(
        self,
        manager_name: str,
        plan: TransactionPlan,
        error: ChainTimeout,
    ) -> Optional[TransactionOutcome]:
        """
        Look up a timed-out submission by digest while the gate is held.

        Returns the executed outcome, or None when the transaction could
        not be found in time and the outcome stays unknown.
        """
        wait_seconds = self._timeouts.unknown_outcome_wait_seconds
        if not error.digest or wait_seconds <= 0:
            return None

        logger.warning(
            f"Balance manager {manager_name}: '{plan.description}' timed out, "
            f"looking up {error.digest}"
        )
        try:
            outcome = await self._gateway.wait_for_transaction(error.digest, wait_seconds)
        except DeepbookError as e:
            logger.warning(f"Balance manager {manager_name}: lookup of {error.digest} failed: {e}")
            return None

        if outcome is not None:
            logger.info(
                f"Balance manager {manager_name}: {error.digest} found, "
                f"success={outcome.success}"
            )
        return outcome

    def _check_fencing(self, plan: TransactionPlan, snapshot: BalanceManager, stored: Optional[int]) -> None:
        if plan.manager_id != snapshot.object_id:
            raise PlanError(
                f"Plan '{plan.description}' targets {plan.manager_id}, "
                f"admitted for {snapshot.object_id}"
            )
        planned = plan.version_of(snapshot.object_id)
        if planned is None or planned != snapshot.version:
            raise PlanError(
                f"Plan '{plan.description}' built against version {planned}, "
                f"admitted at {snapshot.version}"
            )
        if stored is not None and planned < stored:
            raise PlanError(
                f"Plan '{plan.description}' built against version {planned}, "
                f"older than confirmed {stored}"
            )

    async def _execute_with_conflicts(self, manager_name: str, build: BuildFn) -> TransactionOutcome:
        max_attempts = self._retry.max_version_conflict_attempts
        manager = self._store.get(manager_name)

        fetched: Optional[int] = None
        if manager.version is None or manager.version_unknown:
            fetched = await self._refetch_version(manager)

        attempt = 0
        while True:
            attempt += 1
            snapshot = self._store.get(manager_name)
            stored = snapshot.version
            if fetched is not None:
                snapshot.version = fetched

            plan = build(snapshot)
            self._check_fencing(plan, snapshot, stored)

            try:
                outcome = await with_retries(
                    lambda: self._gateway.submit(plan),
                    self._retry,
                    f"Submit '{plan.description}'",
                )
            except ChainTimeout as e:
                resolved = await self._resolve_unknown(manager_name, plan, e)
                if resolved is None:
                    self._store.mark_version_unknown(manager_name)
                    logger.warning(
                        f"Balance manager {manager_name}: '{plan.description}' outcome unknown, "
                        f"version will be refetched"
                    )
                    raise
                outcome = resolved
            outcome.attempts = attempt

            if outcome.success:
                version = self._store.apply_outcome(manager_name, outcome, plan)
                logger.info(
                    f"Balance manager {manager_name}: '{plan.description}' confirmed "
                    f"({outcome.digest}), version {version}"
                )
                return outcome

            failure = outcome.failure
            if failure.code == "OBJECT_VERSION_CONFLICT":
                logger.warning(
                    f"Balance manager {manager_name}: version conflict on "
                    f"{failure.object_id} (attempt {attempt}/{max_attempts})"
                )
                if attempt >= max_attempts:
                    self._store.mark_version_unknown(manager_name)
                    raise error_from_failure(failure, outcome.digest, attempts=attempt)
                fetched = await self._refetch_version(snapshot)
                continue

            # Executed and aborted: objects were still consumed
            self._store.apply_outcome(manager_name, outcome, plan)
            coin, requested = next(
                ((coin, -delta) for coin, delta in plan.balance_deltas.items() if delta < 0),
                ("", 0),
            )
            error = error_from_failure(
                failure,
                outcome.digest,
                manager=manager_name,
                coin=coin,
                requested=requested,
                attempts=attempt,
            )
            logger.error(f"Balance manager {manager_name}: '{plan.description}' rejected: {error}")
            raise error
