"""
DeepBook Client Package.

============================================================
PURPOSE
============================================================
Client for the DeepBook order book on Sui.

CRITICAL PRINCIPLE:
    "One mutation in flight per balance manager."
    "Plan N+1 is built from the version plan N produced."

AUTHORITY BOUNDARIES:
    CAN:
        - Build and submit DeepBook transactions
        - Track balance manager versions and cached balances
        - Retry transient network failures
        - Rebuild plans after version conflicts

    MUST NOT:
        - Handle private keys
        - Retry a submission whose outcome is unknown
        - Round amounts that do not scale exactly

============================================================
MODULES
============================================================
- types: Coins, pools, balance managers, orders, outcomes
- constants: Network presets and scalars
- config: Client configuration
- errors: Error taxonomy and codes
- registry: Coin and pool registries
- scaling: Human <-> chain amount conversion
- store: Balance manager store
- transactions: Plans and contract call builders
- sequencer: Per balance manager mutation gate
- retry: Backoff policy
- gateway: Chain gateways (Sui JSON-RPC, Mock)
- client: DeepbookClient facade

============================================================
"""

# ============================================================
# TYPES
# ============================================================
from .types import (
    # Enums
    OrderSide,
    OrderType,
    SelfMatchingOption,
    OrderStatus,
    # Dataclasses
    CoinMetadata,
    PoolMetadata,
    PoolHandle,
    CachedBalance,
    BalanceManager,
    Order,
    OrderPage,
    ObjectState,
    ChainFailure,
    TransactionOutcome,
    ManagerBalance,
)

# ============================================================
# CONSTANTS
# ============================================================
from .constants import (
    FLOAT_SCALAR,
    DEEP_SCALAR,
    MAX_TIMESTAMP,
    GAS_BUDGET,
    NETWORK_PRESETS,
)

# ============================================================
# CONFIGURATION
# ============================================================
from .config import (
    RetryConfig,
    TimeoutConfig,
    CacheConfig,
    BalanceManagerConfig,
    DeepbookConfig,
)

# ============================================================
# ERRORS
# ============================================================
from .errors import (
    ErrorCategory,
    ExecutionCertainty,
    ErrorCodeInfo,
    ERROR_CODES,
    get_error_info,
    is_retryable,
    DeepbookError,
    InvalidConfig,
    UnknownCoin,
    UnknownPool,
    UnknownManager,
    AmountValidationError,
    InvalidAmount,
    InvalidArgument,
    PrecisionLoss,
    InvalidTickAlignment,
    InvalidLotAlignment,
    BelowMinimumSize,
    InsufficientBalance,
    PlanError,
    ObjectVersionConflict,
    NetworkTransient,
    ChainTimeout,
    ChainExecutionError,
)

# ============================================================
# COMPONENTS
# ============================================================
from .registry import CoinRegistry, PoolRegistry
from .scaling import AmountScaler
from .store import BalanceManagerStore
from .transactions import TransactionBuilder, TransactionPlan
from .sequencer import MutationSequencer
from .retry import with_retries

# ============================================================
# GATEWAYS
# ============================================================
from .gateway import (
    ChainGateway,
    PlanEncoder,
    Signer,
    SuiJsonRpcGateway,
    MockChainGateway,
    MockConfig,
)

# ============================================================
# FACADE
# ============================================================
from .client import DeepbookClient


__all__ = [
    # Types
    "OrderSide",
    "OrderType",
    "SelfMatchingOption",
    "OrderStatus",
    "CoinMetadata",
    "PoolMetadata",
    "PoolHandle",
    "CachedBalance",
    "BalanceManager",
    "Order",
    "OrderPage",
    "ObjectState",
    "ChainFailure",
    "TransactionOutcome",
    "ManagerBalance",
    # Constants
    "FLOAT_SCALAR",
    "DEEP_SCALAR",
    "MAX_TIMESTAMP",
    "GAS_BUDGET",
    "NETWORK_PRESETS",
    # Config
    "RetryConfig",
    "TimeoutConfig",
    "CacheConfig",
    "BalanceManagerConfig",
    "DeepbookConfig",
    # Errors
    "ErrorCategory",
    "ExecutionCertainty",
    "ErrorCodeInfo",
    "ERROR_CODES",
    "get_error_info",
    "is_retryable",
    "DeepbookError",
    "InvalidConfig",
    "UnknownCoin",
    "UnknownPool",
    "UnknownManager",
    "AmountValidationError",
    "InvalidAmount",
    "InvalidArgument",
    "PrecisionLoss",
    "InvalidTickAlignment",
    "InvalidLotAlignment",
    "BelowMinimumSize",
    "InsufficientBalance",
    "PlanError",
    "ObjectVersionConflict",
    "NetworkTransient",
    "ChainTimeout",
    "ChainExecutionError",
    # Components
    "CoinRegistry",
    "PoolRegistry",
    "AmountScaler",
    "BalanceManagerStore",
    "TransactionBuilder",
    "TransactionPlan",
    "MutationSequencer",
    "with_retries",
    # Gateways
    "ChainGateway",
    "PlanEncoder",
    "Signer",
    "SuiJsonRpcGateway",
    "MockChainGateway",
    "MockConfig",
    # Facade
    "DeepbookClient",
]
