"""
Sui JSON-RPC Gateway Tests.

============================================================
PURPOSE
============================================================
Tests for SuiJsonRpcGateway against a scripted HTTP session.

TEST CATEGORIES:
- Execution results: versions, created objects, failures
- Transport failures: transient, unknown outcome, timeouts, malformed replies
- Transaction lookup by digest
- Queries: objects, balances, pool parameters, open orders

============================================================
"""

import pytest
import asyncio
import json
from collections import deque
from unittest.mock import MagicMock

import aiohttp

from deepbook_client import (
    ChainExecutionError,
    ChainTimeout,
    NetworkTransient,
    PlanEncoder,
    Signer,
    SuiJsonRpcGateway,
    TimeoutConfig,
    TransactionPlan,
)
from deepbook_client.transactions import MoveCall


SENDER = "0x" + "a" * 64
MANAGER = "0x" + "1" * 64
CREATED = "0x" + "2" * 64


# ============================================================
# FAKES
# ============================================================

class FakeResponse:
    def __init__(self, body=None, status=200, text="", delay=0.0):
        self.body = body
        self.status = status
        self._text = text
        self._delay = delay

    async def __aenter__(self):
        if self._delay:
            await asyncio.sleep(self._delay)
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    async def text(self):
        return self._text

    async def json(self, content_type=None):
        if self.body is None:
            return json.loads(self._text)
        return self.body


class FakeSession:
    """Returns scripted responses in order, raising exceptions as given."""

    def __init__(self, *responses):
        self.responses = deque(responses)
        self.requests = []

    def post(self, url, json=None):
        self.requests.append(json)
        response = self.responses.popleft()
        if isinstance(response, BaseException):
            raise response
        return response

    async def close(self):
        pass


class FakeEncoder(PlanEncoder):
    def __init__(self, *decoded, digest=None):
        self.decoded = deque(decoded)
        self.digest = digest

    async def encode(self, plan):
        return "dHhieXRlcw=="

    async def encode_inspect(self, plan):
        return "aW5zcGVjdA=="

    def decode_return_values(self, results):
        return self.decoded.popleft()

    def transaction_digest(self, tx_bytes):
        return self.digest


class FakeSigner(Signer):
    @property
    def address(self):
        return SENDER

    async def sign(self, tx_bytes):
        return ["c2lnbmF0dXJl"]


def rpc(result=None, error=None):
    body = {"jsonrpc": "2.0", "id": 1}
    if error is not None:
        body["error"] = error
    else:
        body["result"] = result
    return FakeResponse(body)


def make_gateway(session, *decoded, submit_timeout=1.0, digest=None) -> SuiJsonRpcGateway:
    gateway = SuiJsonRpcGateway(
        rpc_url="http://localhost:9000",
        package_id="0xdee9",
        encoder=FakeEncoder(*decoded, digest=digest),
        signer=FakeSigner(),
        timeout_config=TimeoutConfig(
            connect_timeout_seconds=1.0,
            submit_timeout_seconds=submit_timeout,
            query_timeout_seconds=1.0,
            poll_interval_seconds=0.01,
        ),
    )
    gateway._session = session
    gateway._connected = True
    return gateway


def plan() -> TransactionPlan:
    return TransactionPlan(
        sender=SENDER,
        steps=[MoveCall("0xdee9", "balance_manager", "new")],
        description="test",
    )


MOVE_ABORT = (
    'MoveAbort(MoveLocation { module: ModuleId { address: 0xdee9, '
    'name: Identifier("book") }, function: 3, instruction: 12, '
    'function_name: Some("cancel_order") }, 7) in command 1'
)


# ============================================================
# SUBMIT TESTS
# ============================================================

class TestSubmit:
    """Tests for transaction execution."""

    @pytest.mark.asyncio
    async def test_success(self):
        """Test parsing versions and created objects."""
        session = FakeSession(rpc({
            "digest": "D1",
            "effects": {
                "status": {"status": "success"},
                "mutated": [{"reference": {"objectId": MANAGER, "version": 8}}],
                "created": [{"reference": {"objectId": CREATED, "version": 8}}],
            },
            "objectChanges": [
                {"type": "created", "objectId": CREATED, "objectType": "0xdee9::balance_manager::TradeCap", "version": "8"},
                {"type": "mutated", "objectId": MANAGER, "version": "8"},
            ],
        }))
        gateway = make_gateway(session)

        outcome = await gateway.submit(plan())

        assert outcome.success
        assert outcome.digest == "D1"
        assert outcome.object_versions == {MANAGER: 8, CREATED: 8}
        assert outcome.created_of_type("::balance_manager::TradeCap") == [CREATED]
        assert session.requests[0]["method"] == "sui_executeTransactionBlock"
        assert session.requests[0]["params"][1] == ["c2lnbmF0dXJl"]

    @pytest.mark.asyncio
    async def test_move_abort(self):
        """Test that an aborted execution is a failed outcome with versions."""
        session = FakeSession(rpc({
            "digest": "D2",
            "effects": {
                "status": {"status": "failure", "error": MOVE_ABORT},
                "mutated": [{"reference": {"objectId": MANAGER, "version": 9}}],
            },
        }))
        gateway = make_gateway(session)

        outcome = await gateway.submit(plan())

        assert not outcome.success
        assert outcome.object_versions == {MANAGER: 9}
        assert outcome.failure.reason == "ORDER_NOT_FOUND"
        assert outcome.failure.abort_module == "book"

    @pytest.mark.asyncio
    async def test_rejected_before_execution(self):
        """Test that a version conflict rejection consumes nothing."""
        message = (
            f"Object ID {MANAGER} Version 0x5 Digest abc is not available "
            f"for consumption, current version: 0x6"
        )
        gateway = make_gateway(FakeSession(rpc(error={"code": -32002, "message": message})))

        outcome = await gateway.submit(plan())

        assert not outcome.success
        assert outcome.object_versions == {}
        assert outcome.failure.code == "OBJECT_VERSION_CONFLICT"
        assert outcome.failure.expected_version == 5
        assert outcome.failure.actual_version == 6

    @pytest.mark.asyncio
    async def test_rate_limited_is_transient(self):
        """Test that HTTP 429 never reached the chain."""
        gateway = make_gateway(FakeSession(FakeResponse(status=429, text="slow down")))

        with pytest.raises(NetworkTransient):
            await gateway.submit(plan())

    @pytest.mark.asyncio
    async def test_server_error_is_unknown(self):
        """Test that HTTP 5xx on a submission is an unknown outcome."""
        gateway = make_gateway(FakeSession(FakeResponse(status=500, text="internal")))

        with pytest.raises(ChainTimeout):
            await gateway.submit(plan())

    @pytest.mark.asyncio
    async def test_connection_refused_is_transient(self):
        """Test that a failed connect never reached the chain."""
        error = aiohttp.ClientConnectorError(MagicMock(), OSError(111, "Connection refused"))
        gateway = make_gateway(FakeSession(error))

        with pytest.raises(NetworkTransient):
            await gateway.submit(plan())

    @pytest.mark.asyncio
    async def test_disconnect_after_send_is_unknown(self):
        """Test that a dropped connection on a submission is an unknown outcome."""
        gateway = make_gateway(FakeSession(aiohttp.ServerDisconnectedError()))

        with pytest.raises(ChainTimeout) as exc_info:
            await gateway.submit(plan())

        assert not exc_info.value.definitely_not_executed

    @pytest.mark.asyncio
    async def test_slow_node_times_out(self):
        """Test that exceeding the submit timeout raises ChainTimeout."""
        session = FakeSession(FakeResponse(body={"result": {}}, delay=1.0))
        gateway = make_gateway(session, submit_timeout=0.01)

        with pytest.raises(ChainTimeout) as exc_info:
            await gateway.submit(plan())

        assert exc_info.value.timeout_seconds == 0.01

    @pytest.mark.asyncio
    async def test_not_connected(self):
        """Test that submitting without a session is transient."""
        gateway = make_gateway(None)

        with pytest.raises(NetworkTransient):
            await gateway.submit(plan())

    @pytest.mark.asyncio
    async def test_html_reply_is_unknown(self):
        """Test that a non-JSON body on a submission is an unknown outcome."""
        gateway = make_gateway(FakeSession(FakeResponse(text="<html>bad gateway</html>")))

        with pytest.raises(ChainTimeout) as exc_info:
            await gateway.submit(plan())

        assert not exc_info.value.definitely_not_executed
        assert exc_info.value.context["cause_type"] == "JSONDecodeError"

    @pytest.mark.asyncio
    async def test_non_object_reply_is_unknown(self):
        """Test that a JSON body that is not an object is an unknown outcome."""
        gateway = make_gateway(FakeSession(FakeResponse(body=["unexpected"])))

        with pytest.raises(ChainTimeout):
            await gateway.submit(plan())

    @pytest.mark.asyncio
    async def test_timeout_carries_digest(self):
        """Test that a timed-out submission reports the encoder's digest."""
        session = FakeSession(FakeResponse(body={"result": {}}, delay=1.0))
        gateway = make_gateway(session, submit_timeout=0.01, digest="D9")

        with pytest.raises(ChainTimeout) as exc_info:
            await gateway.submit(plan())

        assert exc_info.value.digest == "D9"
        assert exc_info.value.to_dict()["context"]["digest"] == "D9"


# ============================================================
# TRANSACTION LOOKUP TESTS
# ============================================================

NOT_FOUND = {"code": -32602, "message": "Could not find the referenced transaction [TransactionDigest(D1)]."}


class TestTransactionLookup:
    """Tests for resolving unknown outcomes by digest."""

    @pytest.mark.asyncio
    async def test_found_after_polling(self):
        """Test that lookups poll until the transaction is indexed."""
        session = FakeSession(
            rpc(error=NOT_FOUND),
            rpc({
                "digest": "D1",
                "effects": {
                    "status": {"status": "success"},
                    "mutated": [{"reference": {"objectId": MANAGER, "version": 8}}],
                },
            }),
        )
        gateway = make_gateway(session)

        outcome = await gateway.wait_for_transaction("D1", 1.0)

        assert outcome.success
        assert outcome.object_versions == {MANAGER: 8}
        assert [r["method"] for r in session.requests] == ["sui_getTransactionBlock"] * 2
        assert session.requests[0]["params"][0] == "D1"

    @pytest.mark.asyncio
    async def test_not_found_in_time(self):
        """Test that an unindexed digest gives up after the wait."""
        session = FakeSession(*(rpc(error=NOT_FOUND) for _ in range(100)))
        gateway = make_gateway(session)

        assert await gateway.wait_for_transaction("D1", 0.05) is None
        assert len(session.requests) >= 2

    @pytest.mark.asyncio
    async def test_transient_errors_keep_polling(self):
        """Test that a failed lookup is retried within the wait."""
        session = FakeSession(
            FakeResponse(status=503, text="unavailable"),
            rpc({"digest": "D1", "effects": {"status": {"status": "success"}}}),
        )
        gateway = make_gateway(session)

        outcome = await gateway.wait_for_transaction("D1", 1.0)

        assert outcome.success


# ============================================================
# QUERY TESTS
# ============================================================

class TestQueries:
    """Tests for read-only calls."""

    @pytest.mark.asyncio
    async def test_query_object(self):
        """Test decoding an object."""
        gateway = make_gateway(FakeSession(rpc({
            "data": {
                "objectId": MANAGER,
                "version": "12",
                "type": "0xdee9::balance_manager::BalanceManager",
                "owner": {"AddressOwner": SENDER},
                "content": {"fields": {"owner": SENDER}},
            },
        })))

        state = await gateway.query_object(MANAGER)

        assert state.version == 12
        assert state.owner == SENDER
        assert state.fields == {"owner": SENDER}

    @pytest.mark.asyncio
    async def test_query_missing_object(self):
        """Test that a missing object raises OBJECT_NOT_FOUND."""
        gateway = make_gateway(FakeSession(rpc({"error": {"code": "notExists"}})))

        with pytest.raises(ChainExecutionError) as exc_info:
            await gateway.query_object(MANAGER)

        assert exc_info.value.reason == "OBJECT_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_query_server_error_is_transient(self):
        """Test that reads treat HTTP 5xx as transient."""
        gateway = make_gateway(FakeSession(FakeResponse(status=502, text="bad gateway")))

        with pytest.raises(NetworkTransient):
            await gateway.query_object(MANAGER)

    @pytest.mark.asyncio
    async def test_query_html_reply_is_transient(self):
        """Test that reads treat a non-JSON body as transient."""
        gateway = make_gateway(FakeSession(FakeResponse(text="<html>bad gateway</html>")))

        with pytest.raises(NetworkTransient):
            await gateway.query_object(MANAGER)

    @pytest.mark.asyncio
    async def test_query_manager_balance(self):
        """Test a balance read through dev-inspect."""
        session = FakeSession(rpc({"results": [{}]}))
        gateway = make_gateway(session, [[1_500_000]])

        balance = await gateway.query_manager_balance(MANAGER, "0x2::sui::SUI")

        assert balance == 1_500_000
        assert session.requests[0]["method"] == "sui_devInspectTransactionBlock"
        assert session.requests[0]["params"][0] == SENDER

    @pytest.mark.asyncio
    async def test_query_pool_params(self, pools):
        """Test decoding book parameters."""
        handle = pools.handle(pools.resolve_pool("SUI_DBUSDC"))
        gateway = make_gateway(FakeSession(rpc({"results": [{}]})), [[1_000, 100_000_000, 1_000_000_000]])

        assert await gateway.query_pool_params(handle) == (1_000, 100_000_000, 1_000_000_000)

    @pytest.mark.asyncio
    async def test_inspect_abort(self, pools):
        """Test that an aborted inspection raises ChainExecutionError."""
        handle = pools.handle(pools.resolve_pool("SUI_DBUSDC"))
        gateway = make_gateway(FakeSession(rpc({"error": MOVE_ABORT})))

        with pytest.raises(ChainExecutionError) as exc_info:
            await gateway.query_pool_whitelisted(handle)

        assert exc_info.value.abort_code == 7

    @pytest.mark.asyncio
    async def test_query_open_orders_pages(self, pools):
        """Test paging over the sorted order id set."""
        handle = pools.handle(pools.resolve_pool("SUI_DBUSDC"))

        def order(order_id):
            return {"order_id": str(order_id), "balance_manager_id": MANAGER, "quantity": "1000", "status": 0}

        ids = [(2_500_000 << 64) + 3, (2_500_000 << 64) + 1, (2_500_000 << 64) + 2]
        session = FakeSession(*(rpc({"results": [{}]}) for _ in range(4)))
        gateway = make_gateway(
            session,
            [[ids]],
            [[order(ids[1])], [order(ids[2])]],
            [[ids]],
            [[order(ids[0])]],
        )

        first = await gateway.query_open_orders(MANAGER, handle, limit=2)
        second = await gateway.query_open_orders(MANAGER, handle, cursor=first.next_cursor, limit=2)

        assert [o.order_id for o in first.orders] == sorted(ids)[:2]
        assert first.next_cursor == "2"
        assert first.orders[0].price == 2_500_000
        assert [o.order_id for o in second.orders] == [ids[0]]
        assert not second.has_next_page
