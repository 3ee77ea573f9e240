"""
DeepBook Client - Transactions Package.

============================================================
PURPOSE
============================================================
Transaction plans and the builders that produce them.

MODULES:
- plan: TransactionPlan and its argument types
- balance_manager: balance_manager module calls
- deepbook: pool module calls
- governance: staking and fee governance calls
- builder: TransactionBuilder, one plan per logical intent

============================================================
"""

from .plan import (
    ObjectRef,
    Pure,
    StepResult,
    CoinWithBalance,
    MoveCall,
    TransactionPlan,
)
from .balance_manager import (
    BalanceManagerContract,
    BALANCE_MANAGER_TYPE_SUFFIX,
    TRADE_CAP_TYPE_SUFFIX,
    manager_ref,
)
from .deepbook import DeepBookContract, pool_ref
from .governance import GovernanceContract
from .builder import TransactionBuilder


__all__ = [
    "ObjectRef",
    "Pure",
    "StepResult",
    "CoinWithBalance",
    "MoveCall",
    "TransactionPlan",
    "BalanceManagerContract",
    "BALANCE_MANAGER_TYPE_SUFFIX",
    "TRADE_CAP_TYPE_SUFFIX",
    "manager_ref",
    "DeepBookContract",
    "pool_ref",
    "GovernanceContract",
    "TransactionBuilder",
]
