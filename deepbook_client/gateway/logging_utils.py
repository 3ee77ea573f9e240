"""
DeepBook Client - Secure RPC Logging.

============================================================
PURPOSE
============================================================
Log JSON-RPC traffic without leaking signatures or transaction
bytes.

SECURITY REQUIREMENTS:
1. NEVER log signatures or key material
2. Truncate transaction bytes to a short prefix
3. Keep enough of each request to correlate it with node logs

============================================================
"""

import logging
import re
from typing import Any, Dict, List, Optional


logger = logging.getLogger(__name__)


# ============================================================
# SENSITIVE DATA PATTERNS
# ============================================================

SENSITIVE_PARAMS = {
    "signature",
    "signatures",
    "tx_bytes",
    "private_key",
    "secret_key",
    "mnemonic",
}

# Positional parameter names of the methods the gateway calls
RPC_PARAM_NAMES: Dict[str, List[str]] = {
    "sui_executeTransactionBlock": ["tx_bytes", "signatures", "options", "request_type"],
    "sui_devInspectTransactionBlock": ["sender", "tx_bytes", "gas_price", "epoch"],
    "sui_getObject": ["object_id", "options"],
    "sui_getTransactionBlock": ["digest", "options"],
}

# Base64 blobs long enough to be transaction bytes or signatures
SENSITIVE_PATTERNS = [
    (re.compile(r"[A-Za-z0-9+/]{88,}={0,2}"), "***B64***"),
]


# ============================================================
# MASKING FUNCTIONS
# ============================================================

def mask_value(value: str, show_chars: int = 4) -> str:
    """
    Mask a sensitive value, showing only first few chars.

    Args:
        value: Value to mask
        show_chars: Number of chars to show at start

    Returns:
        Masked value
    """
    if not value or len(value) <= show_chars:
        return "***"
    return f"{value[:show_chars]}...***"


def mask_params(params: Dict[str, Any]) -> Dict[str, Any]:
    """
    Mask sensitive parameters.

    Args:
        params: Named request parameters

    Returns:
        Parameters with sensitive values masked
    """
    if not params:
        return {}

    masked: Dict[str, Any] = {}
    for key, value in params.items():
        if key.lower() in SENSITIVE_PARAMS:
            if isinstance(value, list):
                masked[key] = [mask_value(str(item)) for item in value]
            else:
                masked[key] = mask_value(str(value)) if value else value
        elif isinstance(value, dict):
            masked[key] = mask_params(value)
        elif isinstance(value, str):
            masked_value = value
            for pattern, replacement in SENSITIVE_PATTERNS:
                masked_value = pattern.sub(replacement, masked_value)
            masked[key] = masked_value
        else:
            masked[key] = value
    return masked


def name_rpc_params(method: str, params: List[Any]) -> Dict[str, Any]:
    """Give positional JSON-RPC params their names."""
    names = RPC_PARAM_NAMES.get(method, [])
    return {
        names[i] if i < len(names) else f"arg{i}": value
        for i, value in enumerate(params)
    }


# ============================================================
# REQUEST LOGGING
# ============================================================

def log_rpc_request(method: str, params: List[Any], request_id: int) -> None:
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(
            f"RPC request #{request_id} {method}: "
            f"{mask_params(name_rpc_params(method, params))}"
        )


def log_rpc_response(
    method: str,
    request_id: int,
    latency_ms: float,
    error: Optional[Dict[str, Any]] = None,
) -> None:
    if error is not None:
        logger.warning(
            f"RPC response #{request_id} {method} failed in {latency_ms:.0f}ms: "
            f"code={error.get('code')} message={str(error.get('message', ''))[:200]}"
        )
    else:
        logger.debug(f"RPC response #{request_id} {method} ok in {latency_ms:.0f}ms")
