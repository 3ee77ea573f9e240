"""
DeepBook Client - Gateway Package.

============================================================
PURPOSE
============================================================
Chain gateway implementations.

AVAILABLE GATEWAYS:
- SuiJsonRpcGateway: Sui fullnode JSON-RPC
- MockChainGateway: In-memory chain for testing

ERROR HANDLING:
- classify_execution_failure: Effects errors to ChainFailure
- classify_rpc_error: RPC and HTTP errors to error codes
- error_from_failure: ChainFailure to DeepbookError

============================================================
"""

# Base types
from .base import (
    ChainGateway,
    PlanEncoder,
    Signer,
    ORDER_STATUS_CODES,
    encode_order_id,
    decode_order_id,
    order_from_fields,
)

# Gateways
from .sui_rpc import SuiJsonRpcGateway
from .mock import MockChainGateway, MockConfig

# Errors
from .errors import (
    ABORT_REASONS,
    abort_reason,
    classify_execution_failure,
    classify_rpc_error,
    create_network_error,
    create_timeout_error,
    error_from_failure,
    format_move_abort,
    format_version_unavailable,
)

# Logging
from .logging_utils import (
    mask_value,
    mask_params,
    name_rpc_params,
)


__all__ = [
    "ChainGateway",
    "PlanEncoder",
    "Signer",
    "ORDER_STATUS_CODES",
    "encode_order_id",
    "decode_order_id",
    "order_from_fields",
    "SuiJsonRpcGateway",
    "MockChainGateway",
    "MockConfig",
    "ABORT_REASONS",
    "abort_reason",
    "classify_execution_failure",
    "classify_rpc_error",
    "create_network_error",
    "create_timeout_error",
    "error_from_failure",
    "format_move_abort",
    "format_version_unavailable",
    "mask_value",
    "mask_params",
    "name_rpc_params",
]
