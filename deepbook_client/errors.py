"""
DeepBook Client - Error Taxonomy.

============================================================
PURPOSE
============================================================
Classification of every failure the client can surface.

ERROR CATEGORIES:
1. Config Errors     - Bad setup, fatal
2. Lookup Errors     - Unknown coin / pool / balance manager
3. Validation Errors - Amount rejected before any chain call
4. Balance Errors    - Optimistic local balance check failed
5. Conflict Errors   - Object version mismatch on chain
6. Network Errors    - RPC transport failure
7. Timeout Errors    - Outcome of a submission is unknown
8. Chain Errors      - Chain deterministically rejected the transaction

EXECUTION CERTAINTY:
Every error states whether the requested effect definitely did
not happen or whether it is unknown. Blind retry of a mutating
operation is only safe in the first case.

============================================================
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Set


# ============================================================
# ERROR CATEGORIES
# ============================================================

class ErrorCategory(Enum):
    """Error category classification."""

    CONFIG = "CONFIG"
    """Client configuration is invalid."""

    LOOKUP = "LOOKUP"
    """Unknown coin, pool or balance manager."""

    VALIDATION = "VALIDATION"
    """Human amount rejected by the scaler."""

    BALANCE = "BALANCE"
    """Insufficient balance."""

    CONFLICT = "CONFLICT"
    """Object version conflict."""

    NETWORK = "NETWORK"
    """RPC transport failure."""

    TIMEOUT = "TIMEOUT"
    """Round-trip timed out."""

    CHAIN = "CHAIN"
    """Deterministic chain rejection."""

    INTERNAL = "INTERNAL"
    """Malformed plan or other client bug."""


class ExecutionCertainty(Enum):
    """What is known about the on-chain effect of a failed request."""

    NOT_SUBMITTED = "NOT_SUBMITTED"
    """Rejected locally, nothing was sent to the chain."""

    NOT_EXECUTED = "NOT_EXECUTED"
    """Reached the chain (or tried to) but definitely had no effect."""

    UNKNOWN = "UNKNOWN"
    """May or may not have committed. Re-query before retrying."""


# ============================================================
# ERROR CODE REGISTRY
# ============================================================

@dataclass(frozen=True)
class ErrorCodeInfo:
    """Information about an error code."""

    code: str
    """Error code."""

    category: ErrorCategory
    """Error category."""

    is_retryable: bool
    """Whether the client may retry this error on its own."""

    certainty: ExecutionCertainty
    """What is known about the on-chain effect."""

    description: str
    """Human-readable description."""

    recommended_action: str
    """Recommended action for the caller."""


ERROR_CODES: Dict[str, ErrorCodeInfo] = {
    "INVALID_CONFIG": ErrorCodeInfo(
        code="INVALID_CONFIG",
        category=ErrorCategory.CONFIG,
        is_retryable=False,
        certainty=ExecutionCertainty.NOT_SUBMITTED,
        description="Client configuration is invalid",
        recommended_action="Fix the configuration and rebuild the client",
    ),
    "UNKNOWN_COIN": ErrorCodeInfo(
        code="UNKNOWN_COIN",
        category=ErrorCategory.LOOKUP,
        is_retryable=False,
        certainty=ExecutionCertainty.NOT_SUBMITTED,
        description="Coin symbol is not in the coin registry",
        recommended_action="Register the coin or check the symbol",
    ),
    "UNKNOWN_POOL": ErrorCodeInfo(
        code="UNKNOWN_POOL",
        category=ErrorCategory.LOOKUP,
        is_retryable=False,
        certainty=ExecutionCertainty.NOT_SUBMITTED,
        description="Pool key is not in the pool registry",
        recommended_action="Register the pool or check the key",
    ),
    "UNKNOWN_MANAGER": ErrorCodeInfo(
        code="UNKNOWN_MANAGER",
        category=ErrorCategory.LOOKUP,
        is_retryable=False,
        certainty=ExecutionCertainty.NOT_SUBMITTED,
        description="Balance manager name is not registered",
        recommended_action="Register the balance manager",
    ),
    "INVALID_AMOUNT": ErrorCodeInfo(
        code="INVALID_AMOUNT",
        category=ErrorCategory.VALIDATION,
        is_retryable=False,
        certainty=ExecutionCertainty.NOT_SUBMITTED,
        description="Amount is not a positive number",
        recommended_action="Pass a positive decimal amount",
    ),
    "INVALID_ARGUMENT": ErrorCodeInfo(
        code="INVALID_ARGUMENT",
        category=ErrorCategory.VALIDATION,
        is_retryable=False,
        certainty=ExecutionCertainty.NOT_SUBMITTED,
        description="Argument is out of range or malformed",
        recommended_action="Check the argument",
    ),
    "PRECISION_LOSS": ErrorCodeInfo(
        code="PRECISION_LOSS",
        category=ErrorCategory.VALIDATION,
        is_retryable=False,
        certainty=ExecutionCertainty.NOT_SUBMITTED,
        description="Amount has more decimals than the coin supports",
        recommended_action="Truncate the amount to the coin precision",
    ),
    "INVALID_TICK_ALIGNMENT": ErrorCodeInfo(
        code="INVALID_TICK_ALIGNMENT",
        category=ErrorCategory.VALIDATION,
        is_retryable=False,
        certainty=ExecutionCertainty.NOT_SUBMITTED,
        description="Price is not a multiple of the pool tick size",
        recommended_action="Round the price to the tick size",
    ),
    "INVALID_LOT_ALIGNMENT": ErrorCodeInfo(
        code="INVALID_LOT_ALIGNMENT",
        category=ErrorCategory.VALIDATION,
        is_retryable=False,
        certainty=ExecutionCertainty.NOT_SUBMITTED,
        description="Quantity is not a multiple of the pool lot size",
        recommended_action="Round the quantity to the lot size",
    ),
    "BELOW_MINIMUM_SIZE": ErrorCodeInfo(
        code="BELOW_MINIMUM_SIZE",
        category=ErrorCategory.VALIDATION,
        is_retryable=False,
        certainty=ExecutionCertainty.NOT_SUBMITTED,
        description="Quantity is below the pool minimum order size",
        recommended_action="Increase the quantity",
    ),
    "INSUFFICIENT_BALANCE": ErrorCodeInfo(
        code="INSUFFICIENT_BALANCE",
        category=ErrorCategory.BALANCE,
        is_retryable=False,
        certainty=ExecutionCertainty.NOT_SUBMITTED,
        description="Balance manager holds less than requested",
        recommended_action="Deposit funds or reduce the amount",
    ),
    "OBJECT_VERSION_CONFLICT": ErrorCodeInfo(
        code="OBJECT_VERSION_CONFLICT",
        category=ErrorCategory.CONFLICT,
        is_retryable=True,
        certainty=ExecutionCertainty.NOT_EXECUTED,
        description="Object was mutated by another actor",
        recommended_action="Refetch the object version and rebuild",
    ),
    "NETWORK_TRANSIENT": ErrorCodeInfo(
        code="NETWORK_TRANSIENT",
        category=ErrorCategory.NETWORK,
        is_retryable=True,
        certainty=ExecutionCertainty.NOT_EXECUTED,
        description="RPC request failed before reaching the chain",
        recommended_action="Retry with backoff",
    ),
    "TIMEOUT": ErrorCodeInfo(
        code="TIMEOUT",
        category=ErrorCategory.TIMEOUT,
        is_retryable=False,
        certainty=ExecutionCertainty.UNKNOWN,
        description="Round-trip timed out, outcome unknown",
        recommended_action="Query chain state before retrying",
    ),
    "CHAIN_EXECUTION_ERROR": ErrorCodeInfo(
        code="CHAIN_EXECUTION_ERROR",
        category=ErrorCategory.CHAIN,
        is_retryable=False,
        certainty=ExecutionCertainty.NOT_EXECUTED,
        description="Chain rejected the transaction",
        recommended_action="Inspect the abort reason",
    ),
    "PLAN_ERROR": ErrorCodeInfo(
        code="PLAN_ERROR",
        category=ErrorCategory.INTERNAL,
        is_retryable=False,
        certainty=ExecutionCertainty.NOT_SUBMITTED,
        description="Transaction plan is malformed",
        recommended_action="Investigate error logs",
    ),
}


def get_error_info(code: str) -> ErrorCodeInfo:
    """
    Get error info for a code.

    Args:
        code: Error code

    Returns:
        ErrorCodeInfo, or an unknown-outcome default for unregistered codes
    """
    return ERROR_CODES.get(code, ErrorCodeInfo(
        code=code,
        category=ErrorCategory.INTERNAL,
        is_retryable=False,
        certainty=ExecutionCertainty.UNKNOWN,
        description=f"Unknown error: {code}",
        recommended_action="Investigate error",
    ))


def is_retryable(code: str) -> bool:
    """Check if an error code is retryable."""
    return get_error_info(code).is_retryable


RETRYABLE_ERROR_CODES: Set[str] = {
    code for code, info in ERROR_CODES.items() if info.is_retryable
}


# ============================================================
# BASE EXCEPTION
# ============================================================

class DeepbookError(Exception):
    """
    Base exception for the DeepBook client.

    All exceptions carry:
    - code: key into ERROR_CODES
    - context: for debugging
    - certainty: whether the on-chain effect is known not to have happened
    """

    code: str = "PLAN_ERROR"

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.message = message
        self.context = context or {}
        self.cause = cause

        if cause is not None:
            self.context["cause_type"] = type(cause).__name__
            self.context["cause_message"] = str(cause)

    @property
    def info(self) -> ErrorCodeInfo:
        return get_error_info(self.code)

    @property
    def category(self) -> ErrorCategory:
        return self.info.category

    @property
    def certainty(self) -> ExecutionCertainty:
        return self.info.certainty

    @property
    def is_retryable(self) -> bool:
        return self.info.is_retryable

    @property
    def definitely_not_executed(self) -> bool:
        """True when the requested effect is known not to be on chain."""
        return self.certainty != ExecutionCertainty.UNKNOWN

    def to_dict(self) -> Dict[str, Any]:
        """Serialize exception for logging."""
        return {
            "type": type(self).__name__,
            "code": self.code,
            "message": self.message,
            "category": self.category.value,
            "certainty": self.certainty.value,
            "retryable": self.is_retryable,
            "context": self.context,
        }


# ============================================================
# CONFIG / LOOKUP ERRORS
# ============================================================

class InvalidConfig(DeepbookError):
    """Configuration is missing or invalid."""

    code = "INVALID_CONFIG"

    def __init__(self, key: str, reason: str, value: Any = None):
        context = {"config_key": key, "reason": reason}
        if value is not None:
            context["actual_value"] = str(value)[:100]
        super().__init__(f"Invalid configuration for {key}: {reason}", context=context)
        self.key = key


class UnknownCoin(DeepbookError):
    code = "UNKNOWN_COIN"

    def __init__(self, symbol: str):
        super().__init__(f"Coin not found: {symbol}", context={"coin": symbol})
        self.symbol = symbol


class UnknownPool(DeepbookError):
    code = "UNKNOWN_POOL"

    def __init__(self, pool_key: str):
        super().__init__(f"Pool not found: {pool_key}", context={"pool": pool_key})
        self.pool_key = pool_key


class UnknownManager(DeepbookError):
    code = "UNKNOWN_MANAGER"

    def __init__(self, name: str):
        super().__init__(
            f"Balance manager not found: {name}",
            context={"manager": name},
        )
        self.name = name


# ============================================================
# VALIDATION ERRORS
# ============================================================

class AmountValidationError(DeepbookError):
    """Base for amounts rejected before any chain interaction."""

    def __init__(self, message: str, amount: Any, **context: Any):
        context["amount"] = str(amount)
        super().__init__(message, context=context)
        self.amount = amount


class InvalidAmount(AmountValidationError):
    code = "INVALID_AMOUNT"


class InvalidArgument(AmountValidationError):
    """Non-amount argument (order id, expiration, object id) rejected."""

    code = "INVALID_ARGUMENT"

    def __init__(self, name: str, reason: str, value: Any):
        super().__init__(f"Invalid {name}: {reason}", value, argument=name)
        self.name = name


class PrecisionLoss(AmountValidationError):
    code = "PRECISION_LOSS"


class InvalidTickAlignment(AmountValidationError):
    code = "INVALID_TICK_ALIGNMENT"


class InvalidLotAlignment(AmountValidationError):
    code = "INVALID_LOT_ALIGNMENT"


class BelowMinimumSize(AmountValidationError):
    code = "BELOW_MINIMUM_SIZE"


class InsufficientBalance(DeepbookError):
    """
    Balance manager holds less than requested.

    Raised locally from a fresh cache (NOT_SUBMITTED), or built from a
    chain abort after submission (``from_chain=True``, NOT_EXECUTED).
    """

    code = "INSUFFICIENT_BALANCE"

    def __init__(
        self,
        manager: str,
        coin: str,
        requested: int,
        available: Optional[int] = None,
        from_chain: bool = False,
    ):
        super().__init__(
            f"Insufficient {coin} balance in {manager}: "
            f"requested {requested}, available {available}",
            context={
                "manager": manager,
                "coin": coin,
                "requested": requested,
                "available": available,
                "from_chain": from_chain,
            },
        )
        self.manager = manager
        self.coin = coin
        self.requested = requested
        self.available = available
        self.from_chain = from_chain

    @property
    def certainty(self) -> ExecutionCertainty:
        if self.from_chain:
            return ExecutionCertainty.NOT_EXECUTED
        return ExecutionCertainty.NOT_SUBMITTED


class PlanError(DeepbookError):
    """Transaction plan is malformed."""

    code = "PLAN_ERROR"


# ============================================================
# CHAIN / TRANSPORT ERRORS
# ============================================================

class ObjectVersionConflict(DeepbookError):
    """Chain observed a version mismatch on an owned object."""

    code = "OBJECT_VERSION_CONFLICT"

    def __init__(
        self,
        object_id: str,
        expected_version: Optional[int] = None,
        actual_version: Optional[int] = None,
        attempts: int = 0,
    ):
        super().__init__(
            f"Version conflict on {object_id}: built against "
            f"{expected_version}, chain has {actual_version}",
            context={
                "object_id": object_id,
                "expected_version": expected_version,
                "actual_version": actual_version,
                "attempts": attempts,
            },
        )
        self.object_id = object_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        self.attempts = attempts


class NetworkTransient(DeepbookError):
    """RPC-layer failure that never reached the chain."""

    code = "NETWORK_TRANSIENT"

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message, context={"operation": operation}, cause=cause)
        self.operation = operation


class ChainTimeout(DeepbookError):
    """A chain round-trip timed out. The outcome is unknown."""

    code = "TIMEOUT"

    def __init__(
        self,
        operation: str,
        timeout_seconds: float,
        digest: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(
            f"{operation} timed out after {timeout_seconds}s, outcome unknown",
            context={
                "operation": operation,
                "timeout_seconds": timeout_seconds,
                "digest": digest,
            },
            cause=cause,
        )
        self.operation = operation
        self.timeout_seconds = timeout_seconds
        self.digest = digest

    def attach_digest(self, digest: str) -> None:
        """Record the digest of the transaction whose outcome is unknown."""
        self.digest = digest
        self.context["digest"] = digest


class ChainExecutionError(DeepbookError):
    """The chain deterministically rejected the transaction."""

    code = "CHAIN_EXECUTION_ERROR"

    def __init__(
        self,
        message: str,
        reason: str = "MOVE_ABORT",
        abort_module: Optional[str] = None,
        abort_code: Optional[int] = None,
        digest: Optional[str] = None,
    ):
        super().__init__(
            message,
            context={
                "reason": reason,
                "abort_module": abort_module,
                "abort_code": abort_code,
                "digest": digest,
            },
        )
        self.reason = reason
        self.abort_module = abort_module
        self.abort_code = abort_code
        self.digest = digest
