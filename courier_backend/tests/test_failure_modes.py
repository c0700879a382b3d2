"""
Failure Injection Tests.

Validates resilience against payment service and record store failures.
"""

import httpx
import pytest
from sqlalchemy.exc import OperationalError

from courier_backend.app.core.exceptions import PaymentFailedError, StoreUnavailableError
from courier_backend.app.core.reliability import CircuitBreaker, CircuitOpenError
from courier_backend.app.models.package_enums import PackageStatus, PaymentStatus
from courier_backend.app.services.package_state_machine import PackageStateMachine, load_package
from courier_backend.app.services.payment_gateway import HttpPaymentGateway
from courier_backend.app.services.payment_service import PaymentService
from courier_backend.app.services.tracking_ledger import TrackingLedger

from conftest import TestingSessionLocal, auth_headers, package_details


@pytest.mark.asyncio
async def test_circuit_breaker_activates():
    """Test that circuit breaker opens after threshold failures."""
    cb = CircuitBreaker(failure_threshold=2, reset_timeout=60)

    async def failing_func():
        raise ValueError("Boom")

    for _ in range(2):
        with pytest.raises(ValueError):
            await cb.call(failing_func)

    with pytest.raises(CircuitOpenError):
        await cb.call(failing_func)


@pytest.mark.asyncio
async def test_circuit_breaker_half_open_recovers():
    cb = CircuitBreaker(failure_threshold=1, reset_timeout=60)

    async def failing_func():
        raise ValueError("Boom")

    async def ok_func():
        return "ok"

    with pytest.raises(ValueError):
        await cb.call(failing_func)
    assert cb.state == "OPEN"

    # Pretend reset_timeout elapsed: one trial call goes through
    cb.last_failure_time -= 61
    assert await cb.call(ok_func) == "ok"
    assert cb.state == "CLOSED"
    assert cb.failures == 0


def gateway_with(handler, **kwargs):
    return HttpPaymentGateway(
        "http://payments.test",
        timeout=1.0,
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


@pytest.mark.asyncio
async def test_http_gateway_authorizes():
    seen = []

    def handler(request):
        seen.append((request.url.path, request.read()))
        return httpx.Response(200, json={"payment_id": "pay_123"})

    authorization = await gateway_with(handler).authorize(21.0, "card")

    assert authorization.payment_id == "pay_123"
    assert authorization.amount == 21.0
    assert seen[0][0] == "/authorize"


@pytest.mark.asyncio
async def test_http_gateway_decline():
    def handler(request):
        return httpx.Response(402, json={"reason": "insufficient funds"})

    with pytest.raises(PaymentFailedError) as exc_info:
        await gateway_with(handler).authorize(21.0, "card")

    assert "insufficient funds" in exc_info.value.message
    assert exc_info.value.details["status_code"] == 402


@pytest.mark.asyncio
async def test_http_gateway_timeout_is_payment_failure():
    def handler(request):
        raise httpx.ConnectTimeout("timed out", request=request)

    with pytest.raises(PaymentFailedError) as exc_info:
        await gateway_with(handler).authorize(21.0, "card")

    assert exc_info.value.status_code == 402
    assert "timed out" in exc_info.value.message


@pytest.mark.asyncio
async def test_http_gateway_opens_circuit_after_repeated_outages():
    calls = []

    def handler(request):
        calls.append(request)
        raise httpx.ConnectError("connection refused", request=request)

    gateway = gateway_with(handler, breaker=CircuitBreaker(failure_threshold=2, reset_timeout=60))

    for _ in range(3):
        with pytest.raises(PaymentFailedError):
            await gateway.authorize(10.0, "card")

    # Third attempt never reached the transport
    assert len(calls) == 2
    assert gateway.breaker.state == "OPEN"


@pytest.mark.asyncio
async def test_http_gateway_capture():
    def handler(request):
        if request.url.path == "/capture":
            return httpx.Response(200, json={"status": "captured"})
        return httpx.Response(404)

    assert await gateway_with(handler).capture("pay_1") is True

    def declining(request):
        return httpx.Response(402, json={"reason": "expired"})

    assert await gateway_with(declining).capture("pay_1") is False


@pytest.mark.asyncio
async def test_store_failure_leaves_package_untouched(db_session, gateway, world, monkeypatch):
    package = await PackageStateMachine.create(db_session, world.sender, package_details(), gateway)
    package_id = package.id

    async def broken_append(*args, **kwargs):
        raise OperationalError("INSERT INTO tracking_events", {}, Exception("disk I/O error"))

    monkeypatch.setattr(TrackingLedger, "append", broken_append)

    with pytest.raises(StoreUnavailableError):
        await PackageStateMachine.transition(db_session, package_id, world.super_admin, "picked_up")

    monkeypatch.undo()

    async with TestingSessionLocal() as session:
        fresh = await load_package(session, package_id)
        assert fresh.status == PackageStatus.PENDING
        assert [e.status async for e in TrackingLedger.history(session, package_id)] == [PackageStatus.PENDING]


@pytest.mark.asyncio
async def test_store_failure_is_503_over_http(client, world, mocker):
    response = await client.post("/v1/packages", json=package_details(), headers=auth_headers(world.sender))
    package_id = response.json()["id"]

    mocker.patch.object(
        TrackingLedger, "append",
        side_effect=OperationalError("INSERT INTO tracking_events", {}, Exception("database is locked")),
    )

    response = await client.post(
        f"/v1/packages/{package_id}/status",
        json={"status": "picked_up"},
        headers=auth_headers(world.super_admin),
    )

    assert response.status_code == 503
    assert response.json()["error_code"] == "ERR_STORE_001"


@pytest.mark.asyncio
async def test_capture_holds_no_transaction_during_gateway_call(db_session, gateway, world, mocker):
    package = await PackageStateMachine.create(db_session, world.sender, package_details(), gateway)
    open_during_call = []

    async def capture(payment_id):
        open_during_call.append(db_session.in_transaction())
        return True

    mocker.patch.object(gateway, "capture", side_effect=capture)

    settled, captured = await PaymentService.capture(db_session, package.id, world.sender, gateway)

    assert captured is True
    assert open_during_call == [False]
    assert settled.payment_status == PaymentStatus.PAID
