"""
DeepBook Client - Chain Failure Classification.

============================================================
PURPOSE
============================================================
Map raw node and Move VM failures to the client error taxonomy.

SOURCES:
1. JSON-RPC error objects and HTTP status codes
2. Execution status errors in transaction effects
   (MoveAbort, ObjectVersionUnavailableForConsumption, ...)

Abort codes are keyed by (module, code).

============================================================
"""

import re
from typing import Dict, Optional, Tuple

from ..errors import (
    ChainExecutionError,
    ChainTimeout,
    DeepbookError,
    InsufficientBalance,
    NetworkTransient,
    ObjectVersionConflict,
)
from ..types import ChainFailure


# ============================================================
# MOVE ABORT TABLE
# ============================================================

# (module, abort code) -> (reason, error code)
ABORT_REASONS: Dict[Tuple[str, int], Tuple[str, str]] = {
    ("balance_manager", 0): ("INVALID_OWNER", "CHAIN_EXECUTION_ERROR"),
    ("balance_manager", 1): ("INVALID_TRADER", "CHAIN_EXECUTION_ERROR"),
    ("balance_manager", 2): ("INVALID_PROOF", "CHAIN_EXECUTION_ERROR"),
    ("balance_manager", 3): ("BALANCE_TOO_LOW", "INSUFFICIENT_BALANCE"),
    ("balance_manager", 4): ("MAX_TRADE_CAPS_REACHED", "CHAIN_EXECUTION_ERROR"),
    ("balance_manager", 5): ("TRADE_CAP_NOT_IN_LIST", "CHAIN_EXECUTION_ERROR"),
    ("book", 1): ("INVALID_AMOUNT_IN", "CHAIN_EXECUTION_ERROR"),
    ("book", 2): ("EMPTY_ORDERBOOK", "CHAIN_EXECUTION_ERROR"),
    ("book", 3): ("INVALID_PRICE_RANGE", "CHAIN_EXECUTION_ERROR"),
    ("book", 4): ("INVALID_TICKS", "CHAIN_EXECUTION_ERROR"),
    ("book", 5): ("ORDER_BELOW_MINIMUM_SIZE", "CHAIN_EXECUTION_ERROR"),
    ("book", 6): ("ORDER_INVALID_LOT_SIZE", "CHAIN_EXECUTION_ERROR"),
    ("book", 7): ("ORDER_NOT_FOUND", "CHAIN_EXECUTION_ERROR"),
    ("book", 8): ("ALREADY_FILLED", "CHAIN_EXECUTION_ERROR"),
    ("order", 1): ("ORDER_EXPIRED", "CHAIN_EXECUTION_ERROR"),
    ("order_info", 2): ("POST_ONLY_WOULD_CROSS", "CHAIN_EXECUTION_ERROR"),
    ("order_info", 3): ("FILL_OR_KILL_NOT_FILLED", "CHAIN_EXECUTION_ERROR"),
    ("state", 1): ("NO_STAKE", "CHAIN_EXECUTION_ERROR"),
    ("governance", 1): ("INVALID_FEE", "CHAIN_EXECUTION_ERROR"),
    ("governance", 3): ("PROPOSAL_NOT_FOUND", "CHAIN_EXECUTION_ERROR"),
    ("governance", 4): ("NOT_ENOUGH_STAKE", "CHAIN_EXECUTION_ERROR"),
}


def abort_reason(module: str, code: int) -> Tuple[str, str]:
    """(reason, error code) for a Move abort, MOVE_ABORT when unknown."""
    return ABORT_REASONS.get((module, code), ("MOVE_ABORT", "CHAIN_EXECUTION_ERROR"))


def format_move_abort(address: str, module: str, function: str, code: int, command: int = 0) -> str:
    """Render an abort the way node effects report it."""
    return (
        f'MoveAbort(MoveLocation {{ module: ModuleId {{ address: {address}, '
        f'name: Identifier("{module}") }}, function: 0, instruction: 0, '
        f'function_name: Some("{function}") }}, {code}) in command {command}'
    )


def format_version_unavailable(object_id: str, provided: int, current: int) -> str:
    return (
        f"ObjectVersionUnavailableForConsumption {{ provided_obj_ref: "
        f"({object_id}, SequenceNumber({provided}), o#0), "
        f"current_version: SequenceNumber({current}) }}"
    )


# ============================================================
# EXECUTION FAILURES
# ============================================================

_MOVE_ABORT_RE = re.compile(
    r'MoveAbort\(.*?name:\s*Identifier\("(?P<module>\w+)"\).*?'
    r'function_name:\s*(?:Some\("(?P<function>\w+)"\)|None)\s*\},\s*(?P<code>\d+)\)',
    re.DOTALL,
)

_VERSION_EFFECTS_RE = re.compile(
    r"ObjectVersionUnavailableForConsumption\s*\{\s*provided_obj_ref:\s*"
    r"\((?P<object_id>0x[0-9a-fA-F]+),\s*SequenceNumber\((?P<expected>\d+)\).*?"
    r"current_version:\s*SequenceNumber\((?P<actual>\d+)\)",
    re.DOTALL,
)

_VERSION_RPC_RE = re.compile(
    r"Object ID (?P<object_id>0x[0-9a-fA-F]+) Version (?P<expected>0x[0-9a-fA-F]+|\d+) "
    r"Digest \S+ is not available for consumption, current version: "
    r"(?P<actual>0x[0-9a-fA-F]+|\d+)"
)


def _parse_int(value: str) -> int:
    return int(value, 16) if value.startswith("0x") else int(value)


def classify_execution_failure(error_text: str) -> ChainFailure:
    """
    Classify a failure reported by the chain.

    Args:
        error_text: Effects status error or RPC rejection message

    Returns:
        ChainFailure with code and reason filled in
    """
    text = error_text or ""

    match = _VERSION_EFFECTS_RE.search(text) or _VERSION_RPC_RE.search(text)
    if match:
        return ChainFailure(
            code="OBJECT_VERSION_CONFLICT",
            message=text,
            reason="OBJECT_VERSION_CONFLICT",
            object_id=match.group("object_id"),
            expected_version=_parse_int(match.group("expected")),
            actual_version=_parse_int(match.group("actual")),
        )

    match = _MOVE_ABORT_RE.search(text)
    if match:
        module = match.group("module")
        code = int(match.group("code"))
        reason, error_code = abort_reason(module, code)
        return ChainFailure(
            code=error_code,
            message=text,
            reason=reason,
            abort_module=module,
            abort_code=code,
        )

    if "InsufficientCoinBalance" in text:
        return ChainFailure(code="INSUFFICIENT_BALANCE", message=text, reason="WALLET_BALANCE_TOO_LOW")

    if "InsufficientGas" in text:
        return ChainFailure(code="CHAIN_EXECUTION_ERROR", message=text, reason="INSUFFICIENT_GAS")

    return ChainFailure(code="CHAIN_EXECUTION_ERROR", message=text, reason="EXECUTION_FAILED")


# ============================================================
# RPC ERRORS
# ============================================================

TRANSIENT_HTTP_STATUS = {429, 503}
"""Statuses returned before the node accepted the request."""

TRANSIENT_RPC_CODES = {
    -32700,  # parse error, usually a truncated body
    -32050,  # server overloaded
}


def classify_rpc_error(
    code: Optional[int],
    message: str,
    http_status: Optional[int] = None,
    mutating: bool = False,
) -> str:
    """
    Map an RPC-level error to an internal error code.

    For mutating requests a server failure after the node accepted the
    request is an unknown outcome (TIMEOUT). Reads are idempotent and
    treat it as transient.

    Returns:
        NETWORK_TRANSIENT, TIMEOUT, OBJECT_VERSION_CONFLICT,
        INSUFFICIENT_BALANCE or CHAIN_EXECUTION_ERROR
    """
    if http_status is not None and http_status != 200:
        if http_status in TRANSIENT_HTTP_STATUS:
            return "NETWORK_TRANSIENT"
        if http_status >= 500:
            return "TIMEOUT" if mutating else "NETWORK_TRANSIENT"
        return "CHAIN_EXECUTION_ERROR"

    if code in TRANSIENT_RPC_CODES:
        return "NETWORK_TRANSIENT"

    if code == -32603 and not mutating:
        return "NETWORK_TRANSIENT"

    return classify_execution_failure(message).code


# ============================================================
# ERROR CONSTRUCTION
# ============================================================

def create_network_error(operation: str, cause: Optional[BaseException] = None, message: str = "") -> NetworkTransient:
    return NetworkTransient(
        message or f"Network error during {operation}: {cause}",
        operation=operation,
        cause=cause,
    )


def create_timeout_error(
    operation: str,
    timeout_seconds: float,
    digest: Optional[str] = None,
    cause: Optional[BaseException] = None,
) -> ChainTimeout:
    return ChainTimeout(operation, timeout_seconds, digest=digest, cause=cause)


def error_from_failure(
    failure: ChainFailure,
    digest: str = "",
    manager: str = "",
    coin: str = "",
    requested: int = 0,
    attempts: int = 1,
) -> DeepbookError:
    """
    Build the exception for a failed outcome.

    Args:
        failure: Classified failure
        digest: Transaction digest, if executed
        manager, coin, requested: Context for balance failures
        attempts: Submissions made, for version conflicts
    """
    if failure.code == "OBJECT_VERSION_CONFLICT":
        return ObjectVersionConflict(
            failure.object_id or "",
            expected_version=failure.expected_version,
            actual_version=failure.actual_version,
            attempts=attempts,
        )
    if failure.code == "INSUFFICIENT_BALANCE":
        error = InsufficientBalance(manager, coin, requested, from_chain=True)
        error.context["digest"] = digest
        error.context["chain_message"] = failure.message[:500]
        return error
    return ChainExecutionError(
        f"Transaction rejected: {failure.reason}",
        reason=failure.reason,
        abort_module=failure.abort_module,
        abort_code=failure.abort_code,
        digest=digest or None,
    )
