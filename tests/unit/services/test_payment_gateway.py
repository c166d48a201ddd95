"""Tests for the refund gateway adapter."""
import json
from decimal import Decimal

import httpx
import pytest

from jobworker.services.payment_gateway import (
    IDEMPOTENCY_HEADER,
    RefundGateway,
    RefundGatewayError,
)


def make_gateway(handler):
    return RefundGateway(
        key_id="rzp_key",
        key_secret="secret",
        base_url="https://api.test/v1/",
        transport=httpx.MockTransport(handler),
    )


class TestRefundGateway:
    def test_from_settings_unconfigured(self, settings):
        gateway = RefundGateway.from_settings(settings)
        assert gateway.configured is False

    @pytest.mark.asyncio
    async def test_manual_when_unconfigured(self):
        ref = await RefundGateway().create_refund("r-1", "pay_1", Decimal("10"))
        assert ref == "manual:r-1"

    @pytest.mark.asyncio
    async def test_posts_refund(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers.get("authorization")
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"id": "rfnd_123"})

        ref = await make_gateway(handler).create_refund("r-1", "pay_1", Decimal("120.50"))

        assert ref == "rfnd_123"
        assert seen["url"] == "https://api.test/v1/payments/pay_1/refund"
        assert seen["auth"].startswith("Basic ")
        assert seen["body"] == {"notes": {"refund_request_id": "r-1"}, "amount": 12050}

    @pytest.mark.asyncio
    async def test_full_refund_omits_amount(self):
        bodies = []

        def handler(request):
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json={"id": "rfnd_1"})

        await make_gateway(handler).create_refund("r-1", "pay_1")
        assert "amount" not in bodies[0]

    @pytest.mark.asyncio
    async def test_http_error_wrapped(self):
        gateway = make_gateway(lambda request: httpx.Response(400, json={"error": "bad"}))

        with pytest.raises(RefundGatewayError) as exc:
            await gateway.create_refund("r-1", "pay_1", Decimal("1"))
        assert exc.value.status_code == 400

    @pytest.mark.asyncio
    async def test_transport_error_wrapped(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(RefundGatewayError, match="refund request failed"):
            await make_gateway(handler).create_refund("r-1", "pay_1")

    @pytest.mark.asyncio
    async def test_missing_payment_id(self):
        with pytest.raises(RefundGatewayError, match="no payment_id"):
            await make_gateway(lambda r: httpx.Response(200)).create_refund("r-1", None)

    @pytest.mark.asyncio
    async def test_response_without_id(self):
        gateway = make_gateway(lambda request: httpx.Response(200, json={}))
        with pytest.raises(RefundGatewayError, match="missing refund id"):
            await gateway.create_refund("r-1", "pay_1")

    @pytest.mark.asyncio
    async def test_repeated_call_reuses_idempotency_key(self):
        keys = []
        refunds_by_key = {}

        def handler(request):
            key = request.headers.get(IDEMPOTENCY_HEADER)
            keys.append(key)
            refund_id = refunds_by_key.setdefault(key, f"rfnd_{len(refunds_by_key) + 1}")
            return httpx.Response(200, json={"id": refund_id})

        gateway = make_gateway(handler)
        first = await gateway.create_refund("r-1", "pay_1", Decimal("5"))
        second = await gateway.create_refund("r-1", "pay_1", Decimal("5"))

        assert keys == ["r-1", "r-1"]
        assert first == second == "rfnd_1"
