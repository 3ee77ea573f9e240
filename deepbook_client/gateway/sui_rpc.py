"""
DeepBook Client - Sui JSON-RPC Gateway.

============================================================
PURPOSE
============================================================
ChainGateway over a Sui fullnode's JSON-RPC API.

METHODS USED:
- sui_executeTransactionBlock    (submit)
- sui_getObject                  (query_object)
- sui_getTransactionBlock        (wait_for_transaction)
- sui_devInspectTransactionBlock (read-only Move calls)

FAILURE MAPPING:
- Connection never established     -> NetworkTransient
- Connection lost after sending    -> ChainTimeout (outcome unknown)
- Round-trip exceeds its timeout   -> ChainTimeout
- Deterministic rejection          -> failed TransactionOutcome
- Reply that is not a JSON object  -> ChainTimeout on submit, NetworkTransient on reads

============================================================
"""

import asyncio
import itertools
import logging
import time
from typing import Any, Dict, List, Optional

import aiohttp

from ..config import TimeoutConfig
from ..errors import ChainExecutionError, ChainTimeout, DeepbookError, NetworkTransient
from ..transactions.balance_manager import BalanceManagerContract
from ..transactions.deepbook import DeepBookContract
from ..transactions.plan import MoveCall, TransactionPlan
from ..types import (
    ObjectState,
    OrderPage,
    PoolBookParams,
    PoolHandle,
    TransactionOutcome,
)
from .base import ChainGateway, PlanEncoder, Signer, order_from_fields
from .errors import (
    classify_execution_failure,
    classify_rpc_error,
    create_network_error,
    create_timeout_error,
)
from .logging_utils import log_rpc_request, log_rpc_response


logger = logging.getLogger(__name__)


EXECUTE_OPTIONS = {
    "showEffects": True,
    "showObjectChanges": True,
}

OBJECT_OPTIONS = {
    "showContent": True,
    "showOwner": True,
    "showType": True,
}


class _RpcRejected(Exception):
    """JSON-RPC error the node returned deterministically."""

    def __init__(self, code: Optional[int], message: str):
        super().__init__(message)
        self.code = code
        self.message = message


def _owner_address(owner: Any) -> Optional[str]:
    if isinstance(owner, dict):
        return owner.get("AddressOwner") or owner.get("ObjectOwner")
    return None


class SuiJsonRpcGateway(ChainGateway):
    """
    Sui fullnode gateway.

    Example:
        gateway = SuiJsonRpcGateway(
            rpc_url=config.resolved_rpc_url,
            package_id=config.package_ids.deepbook_package_id,
            encoder=encoder,
            signer=signer,
        )
        await gateway.connect()
    """

    def __init__(
        self,
        rpc_url: str,
        package_id: str,
        encoder: PlanEncoder,
        signer: Signer,
        timeout_config: Optional[TimeoutConfig] = None,
    ):
        self._rpc_url = rpc_url
        self._encoder = encoder
        self._signer = signer
        self._timeouts = timeout_config or TimeoutConfig()

        self._balance_manager = BalanceManagerContract(package_id)
        self._deepbook = DeepBookContract(package_id)

        self._session: Optional[aiohttp.ClientSession] = None
        self._connected = False
        self._request_ids = itertools.count(1)

    @property
    def is_connected(self) -> bool:
        return self._connected and self._session is not None

    # --------------------------------------------------------
    # CONNECTION
    # --------------------------------------------------------

    async def connect(self) -> None:
        """Open the HTTP session and check the node answers."""
        if self._session is not None:
            await self.disconnect()

        timeout = aiohttp.ClientTimeout(connect=self._timeouts.connect_timeout_seconds)
        self._session = aiohttp.ClientSession(timeout=timeout)

        try:
            await self._query("sui_getChainIdentifier", [])
        except DeepbookError:
            await self.disconnect()
            raise

        self._connected = True
        logger.info(f"Connected to Sui fullnode {self._rpc_url}")

    async def disconnect(self) -> None:
        self._connected = False
        if self._session:
            await self._session.close()
            self._session = None
        logger.info("Disconnected from Sui fullnode")

    # --------------------------------------------------------
    # TRANSPORT
    # --------------------------------------------------------

    async def _post(self, method: str, params: List[Any], mutating: bool) -> Any:
        if self._session is None:
            raise create_network_error(method, message=f"{method}: gateway not connected")

        request_id = next(self._request_ids)
        payload = {"jsonrpc": "2.0", "id": request_id, "method": method, "params": params}
        log_rpc_request(method, params, request_id)
        started = time.monotonic()

        try:
            async with self._session.post(self._rpc_url, json=payload) as response:
                if response.status != 200:
                    text = await response.text()
                    internal = classify_rpc_error(None, text, response.status, mutating)
                    log_rpc_response(
                        method, request_id, (time.monotonic() - started) * 1000,
                        error={"code": response.status, "message": text},
                    )
                    if internal == "NETWORK_TRANSIENT":
                        raise create_network_error(method, message=f"{method}: HTTP {response.status}")
                    if internal == "TIMEOUT":
                        raise create_timeout_error(method, self._timeouts.submit_timeout_seconds)
                    raise _RpcRejected(response.status, text)
                try:
                    body = await response.json(content_type=None)
                except ValueError as e:
                    raise self._malformed_reply(method, mutating, cause=e)
        except aiohttp.ClientConnectorError as e:
            raise create_network_error(method, cause=e)
        except aiohttp.ClientError as e:
            if mutating:
                raise create_timeout_error(method, self._timeouts.submit_timeout_seconds, cause=e)
            raise create_network_error(method, cause=e)

        if not isinstance(body, dict):
            raise self._malformed_reply(method, mutating)

        error = body.get("error")
        if error and not isinstance(error, dict):
            error = {"message": error}
        log_rpc_response(method, request_id, (time.monotonic() - started) * 1000, error=error)
        if error:
            code = error.get("code")
            message = str(error.get("message", ""))
            internal = classify_rpc_error(code, message, mutating=mutating)
            if internal == "NETWORK_TRANSIENT":
                raise create_network_error(method, message=f"{method}: {message}")
            if internal == "TIMEOUT":
                raise create_timeout_error(method, self._timeouts.submit_timeout_seconds)
            raise _RpcRejected(code, message)

        return body.get("result")

    def _malformed_reply(self, method: str, mutating: bool, cause: Optional[BaseException] = None) -> DeepbookError:
        """A reply that is not a JSON-RPC object. A submission may still have executed."""
        logger.warning(f"{method}: malformed reply from {self._rpc_url}")
        if mutating:
            return create_timeout_error(method, self._timeouts.submit_timeout_seconds, cause=cause)
        return create_network_error(method, cause=cause, message=f"{method}: malformed reply")

    async def _call(self, method: str, params: List[Any], timeout: float, mutating: bool = False) -> Any:
        try:
            return await asyncio.wait_for(self._post(method, params, mutating), timeout=timeout)
        except asyncio.TimeoutError as e:
            raise create_timeout_error(method, timeout, cause=e)

    async def _query(self, method: str, params: List[Any]) -> Any:
        try:
            return await self._call(method, params, self._timeouts.query_timeout_seconds)
        except _RpcRejected as e:
            failure = classify_execution_failure(e.message)
            raise ChainExecutionError(
                f"{method} rejected: {e.message[:200]}",
                reason=failure.reason,
                abort_module=failure.abort_module,
                abort_code=failure.abort_code,
            )

    # --------------------------------------------------------
    # SUBMIT
    # --------------------------------------------------------

    async def submit(self, plan: TransactionPlan) -> TransactionOutcome:
        tx_bytes = await self._encoder.encode(plan)
        signatures = await self._signer.sign(tx_bytes)

        try:
            result = await self._call(
                "sui_executeTransactionBlock",
                [tx_bytes, signatures, EXECUTE_OPTIONS, "WaitForLocalExecution"],
                self._timeouts.submit_timeout_seconds,
                mutating=True,
            )
        except _RpcRejected as e:
            # Rejected before execution: no object was consumed
            return TransactionOutcome(success=False, failure=classify_execution_failure(e.message))
        except ChainTimeout as e:
            digest = self._encoder.transaction_digest(tx_bytes)
            if digest and not e.digest:
                e.attach_digest(digest)
            raise

        if not isinstance(result, dict):
            raise self._malformed_reply("sui_executeTransactionBlock", mutating=True)
        return self._parse_execution(result)

    async def wait_for_transaction(
        self,
        digest: str,
        timeout_seconds: float,
    ) -> Optional[TransactionOutcome]:
        """Poll sui_getTransactionBlock until the digest is known or time runs out."""
        deadline = time.monotonic() + timeout_seconds
        while True:
            try:
                result = await self._call(
                    "sui_getTransactionBlock",
                    [digest, EXECUTE_OPTIONS],
                    self._timeouts.query_timeout_seconds,
                )
                if isinstance(result, dict) and result.get("effects"):
                    return self._parse_execution(result)
            except _RpcRejected as e:
                logger.debug(f"Transaction {digest} not found yet: {e.message[:100]}")
            except (NetworkTransient, ChainTimeout) as e:
                logger.warning(f"Lookup of transaction {digest} failed: {e}")

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                logger.warning(f"Transaction {digest} not found after {timeout_seconds}s")
                return None
            await asyncio.sleep(min(self._timeouts.poll_interval_seconds, remaining))

    def _parse_execution(self, result: Dict[str, Any]) -> TransactionOutcome:
        effects = result.get("effects") or {}
        status = effects.get("status") or {}

        object_versions: Dict[str, int] = {}
        for key in ("mutated", "created", "unwrapped"):
            for entry in effects.get(key) or []:
                reference = entry.get("reference") or {}
                if "objectId" in reference:
                    object_versions[reference["objectId"]] = int(reference["version"])

        created_objects: Dict[str, str] = {}
        for change in result.get("objectChanges") or []:
            object_id = change.get("objectId")
            if object_id is None:
                continue
            if change.get("type") == "created":
                created_objects[object_id] = change.get("objectType", "")
            if "version" in change:
                object_versions.setdefault(object_id, int(change["version"]))

        success = status.get("status") == "success"
        return TransactionOutcome(
            success=success,
            digest=result.get("digest", ""),
            object_versions=object_versions,
            created_objects=created_objects,
            failure=None if success else classify_execution_failure(status.get("error", "")),
        )

    # --------------------------------------------------------
    # QUERIES
    # --------------------------------------------------------

    async def query_object(self, object_id: str) -> ObjectState:
        result = await self._query("sui_getObject", [object_id, OBJECT_OPTIONS])
        data = (result or {}).get("data")
        if not data:
            error = (result or {}).get("error") or {}
            raise ChainExecutionError(
                f"Object {object_id} not readable: {error.get('code', 'notExists')}",
                reason="OBJECT_NOT_FOUND",
            )
        content = data.get("content") or {}
        return ObjectState(
            object_id=data["objectId"],
            version=int(data["version"]),
            owner=_owner_address(data.get("owner")),
            object_type=data.get("type", ""),
            fields=content.get("fields") or {},
        )

    async def _inspect(self, *calls: MoveCall) -> List[List[Any]]:
        plan = TransactionPlan(sender=self._signer.address, steps=list(calls), description="inspect")
        tx_bytes = await self._encoder.encode_inspect(plan)
        result = await self._query(
            "sui_devInspectTransactionBlock",
            [self._signer.address, tx_bytes, None, None],
        )
        if result.get("error"):
            failure = classify_execution_failure(result["error"])
            raise ChainExecutionError(
                f"Inspect failed: {failure.reason}",
                reason=failure.reason,
                abort_module=failure.abort_module,
                abort_code=failure.abort_code,
            )
        return self._encoder.decode_return_values(result.get("results") or [])

    async def query_manager_balance(self, manager_id: str, coin_type: str) -> int:
        values = await self._inspect(self._balance_manager.balance(manager_id, coin_type))
        return int(values[0][0])

    async def query_pool_params(self, pool: PoolHandle) -> PoolBookParams:
        values = await self._inspect(self._deepbook.pool_book_params(pool))
        tick_size, lot_size, min_size = values[0][:3]
        return int(tick_size), int(lot_size), int(min_size)

    async def query_pool_whitelisted(self, pool: PoolHandle) -> bool:
        values = await self._inspect(self._deepbook.whitelisted(pool))
        return bool(values[0][0])

    async def query_open_orders(
        self,
        manager_id: str,
        pool: PoolHandle,
        cursor: Optional[str] = None,
        limit: int = 50,
    ) -> OrderPage:
        """
        Page through open order ids, then fetch the page's orders.

        The cursor is the offset into the sorted id set.
        """
        values = await self._inspect(self._deepbook.account_open_orders(pool, manager_id))
        order_ids = sorted(int(order_id) for order_id in values[0][0])

        start = int(cursor) if cursor else 0
        page_ids = order_ids[start:start + limit]
        if not page_ids:
            return OrderPage()

        details = await self._inspect(*(self._deepbook.get_order(pool, order_id) for order_id in page_ids))
        orders = [order_from_fields(step[0], pool.pool_id) for step in details]

        end = start + len(page_ids)
        return OrderPage(
            orders=orders,
            next_cursor=str(end) if end < len(order_ids) else None,
        )
