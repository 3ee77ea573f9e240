"""
DeepBook Client - Balance Manager Store.

============================================================
PURPOSE
============================================================
Local model of known balance managers: object id, last confirmed
object version, and a per-coin balance cache.

CRITICAL PRINCIPLE:
    "The version only moves forward, and only from an outcome."
    apply_outcome() is the single path that advances a stored
    version. It is called from the MutationSequencer while it holds
    the manager's gate, so there is one writer per manager.

BALANCE CACHE:
- A cached balance is fresh until invalidated or older than the TTL.
- Confirmed deposits and withdrawals adjust fresh entries exactly.
- Any other coin a plan touches is invalidated.
- A chain read is only cached when no mutation was admitted while it
  was in flight (mutation_count unchanged).

============================================================
"""

import copy
import logging
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Callable, Dict, List, Optional

from .errors import InvalidConfig, UnknownManager
from .types import BalanceManager, CachedBalance, TransactionOutcome

if TYPE_CHECKING:
    from .transactions.plan import TransactionPlan


logger = logging.getLogger(__name__)


class BalanceManagerStore:
    """Known balance managers by logical name."""

    def __init__(
        self,
        balance_ttl_seconds: float = 0.0,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self._managers: Dict[str, BalanceManager] = {}
        self._ttl = timedelta(seconds=balance_ttl_seconds) if balance_ttl_seconds > 0 else None
        self._clock = clock

    # --------------------------------------------------------
    # REGISTRATION
    # --------------------------------------------------------

    def register(
        self,
        name: str,
        object_id: str,
        version: Optional[int] = None,
        owner: Optional[str] = None,
        trade_cap: Optional[str] = None,
    ) -> BalanceManager:
        """
        Register a balance manager under a logical name.

        Raises:
            InvalidConfig: Name already bound to a different object
        """
        existing = self._managers.get(name)
        if existing is not None and existing.object_id != object_id:
            raise InvalidConfig(
                f"balance_managers.{name}",
                f"already registered for {existing.object_id}",
                object_id,
            )
        if existing is None:
            self._managers[name] = BalanceManager(
                name=name,
                object_id=object_id,
                version=version,
                owner=owner,
                trade_cap=trade_cap,
            )
            logger.info(f"Registered balance manager {name} ({object_id})")
        return self.get(name)

    def names(self) -> List[str]:
        return list(self._managers)

    def __contains__(self, name: str) -> bool:
        return name in self._managers

    # --------------------------------------------------------
    # READS
    # --------------------------------------------------------

    def _entry(self, name: str) -> BalanceManager:
        manager = self._managers.get(name)
        if manager is None:
            raise UnknownManager(name)
        return manager

    def _is_stale(self, balance: CachedBalance) -> bool:
        if balance.stale:
            return True
        return self._ttl is not None and self._clock() - balance.fetched_at > self._ttl

    def get(self, name: str) -> BalanceManager:
        """
        Get a copy of a balance manager with staleness resolved.

        Raises:
            UnknownManager: Name is not registered
        """
        manager = copy.deepcopy(self._entry(name))
        for balance in manager.balances.values():
            balance.stale = self._is_stale(balance)
        return manager

    def cached_balance(self, name: str, coin: str) -> Optional[int]:
        """Fresh cached balance, or None if missing or stale."""
        balance = self._entry(name).balances.get(coin)
        if balance is None or self._is_stale(balance):
            return None
        return balance.amount

    # --------------------------------------------------------
    # CACHE UPDATES
    # --------------------------------------------------------

    def set_balance(self, name: str, coin: str, amount: int) -> None:
        """Record a balance just read from the chain."""
        self._entry(name).balances[coin] = CachedBalance(amount=amount, fetched_at=self._clock())

    def invalidate(self, name: str, coin: Optional[str] = None) -> None:
        """Mark one coin's cached balance stale, or every coin if coin is None."""
        manager = self._entry(name)
        coins = [coin] if coin is not None else list(manager.balances)
        for symbol in coins:
            balance = manager.balances.get(symbol)
            if balance is not None:
                balance.stale = True

    def begin_mutation(self, name: str) -> int:
        """Count a mutation admitted by the sequencer. Returns the new count."""
        manager = self._entry(name)
        manager.mutation_count += 1
        return manager.mutation_count

    def mark_version_unknown(self, name: str) -> None:
        """
        Flag the stored version as unreliable.

        Set after a submission with unknown outcome. The next admission
        refetches the version before building.
        """
        manager = self._entry(name)
        manager.version_unknown = True
        for balance in manager.balances.values():
            balance.stale = True
        logger.warning(f"Balance manager {name}: version marked unknown")

    # --------------------------------------------------------
    # OUTCOMES
    # --------------------------------------------------------

    def apply_outcome(
        self,
        name: str,
        outcome: TransactionOutcome,
        plan: Optional["TransactionPlan"] = None,
    ) -> Optional[int]:
        """
        Apply a confirmed transaction outcome.

        Advances the stored version to the version the outcome reports
        for the manager object. Lower or equal versions are ignored.
        Balance deltas are only applied for successful outcomes.

        Returns:
            The stored version after the update
        """
        manager = self._entry(name)
        new_version = outcome.object_versions.get(manager.object_id)

        if new_version is not None:
            if manager.version is None or new_version > manager.version:
                logger.debug(
                    f"Balance manager {name}: version {manager.version} -> {new_version}"
                )
                manager.version = new_version
                manager.version_unknown = False
            elif new_version < manager.version:
                logger.warning(
                    f"Balance manager {name}: ignoring outcome version {new_version} "
                    f"older than stored {manager.version}"
                )

        if outcome.success and plan is not None:
            for coin, delta in plan.balance_deltas.items():
                balance = manager.balances.get(coin)
                if balance is None:
                    continue
                if self._is_stale(balance):
                    balance.stale = True
                    continue
                balance.amount += delta
                if balance.amount < 0:
                    balance.amount = 0
                    balance.stale = True
            for coin in plan.invalidated_coins:
                self.invalidate(name, coin)

        return manager.version
