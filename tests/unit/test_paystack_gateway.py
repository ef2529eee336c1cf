import json
import pytest
import httpx
from decimal import Decimal

from orderhub.core.exceptions import GatewayError, InvalidSignatureError
from orderhub.services.payment.paystack_gateway import (
    ALL_CHANNELS, PaystackGateway, ProviderOutcome, from_minor_units, get_channels, to_minor_units,
)


def gateway_with(handler):
    return PaystackGateway(
        secret_key="sk_test_secret",
        base_url="https://api.paystack.test",
        timeout=1,
        transport=httpx.MockTransport(handler),
    )


class TestHelpers:
    def test_minor_units(self):
        assert to_minor_units(Decimal("2360.00")) == 236000
        assert to_minor_units("10.005") == 1001
        assert from_minor_units(236000) == Decimal("2360.00")
        assert from_minor_units(None) is None

    def test_channels(self):
        assert get_channels("card") == ["card"]
        assert get_channels("mobile_money") == ["mobile_money", "mpesa", "airtel", "orange", "vodafone"]
        assert get_channels("bank_transfer") == ["bank_transfer"]
        assert get_channels(None) == ALL_CHANNELS
        assert get_channels("crypto") == ALL_CHANNELS

    def test_outcome_from_verify_payload(self):
        outcome = ProviderOutcome.from_transaction({
            "id": 302961, "reference": "RMS_abc", "status": "success", "amount": 50000,
            "paid_at": "2026-10-16T10:00:00.000Z", "channel": "card", "gateway_response": "Approved",
        })
        assert outcome.succeeded and outcome.settled
        assert outcome.amount == Decimal("500.00")
        assert outcome.transaction_id == "302961"
        assert outcome.paid_at.year == 2026

    def test_abandoned_is_settled_failure_and_ongoing_is_unsettled(self):
        abandoned = ProviderOutcome.from_transaction({"reference": "r", "status": "abandoned"})
        assert not abandoned.succeeded and abandoned.settled
        ongoing = ProviderOutcome.from_transaction({"reference": "r", "status": "ongoing"})
        assert not ongoing.succeeded and not ongoing.settled


class TestSignature:
    def test_valid_signature(self):
        gateway = gateway_with(lambda request: httpx.Response(500))
        body = b'{"event":"charge.success"}'
        gateway.verify_signature(body, gateway.compute_signature(body))

    def test_tampered_body(self):
        gateway = gateway_with(lambda request: httpx.Response(500))
        signature = gateway.compute_signature(b'{"amount":100}')
        with pytest.raises(InvalidSignatureError):
            gateway.verify_signature(b'{"amount":999}', signature)

    def test_missing_signature(self):
        gateway = gateway_with(lambda request: httpx.Response(500))
        with pytest.raises(InvalidSignatureError) as exc_info:
            gateway.verify_signature(b"{}", None)
        assert exc_info.value.status_code == 401


@pytest.mark.asyncio
class TestRequests:
    async def test_initialize_sends_minor_units_and_auth(self):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"status": True, "data": {
                "authorization_url": "https://checkout.test/x", "access_code": "ac", "reference": "RMS_1",
            }})

        result = await gateway_with(handler).initialize(
            Decimal("2360"), "NGN", "ada@example.com", "RMS_1", channels=["card"],
        )

        assert seen["auth"] == "Bearer sk_test_secret"
        assert seen["body"]["amount"] == 236000
        assert seen["body"]["channels"] == ["card"]
        assert result.authorization_url == "https://checkout.test/x"

    async def test_status_false_is_gateway_error(self):
        gateway = gateway_with(lambda request: httpx.Response(200, json={"status": False, "message": "Invalid key"}))
        with pytest.raises(GatewayError) as exc_info:
            await gateway.verify("RMS_1")
        assert exc_info.value.status_code == 502
        assert exc_info.value.detail == "Invalid key"

    async def test_non_2xx_is_gateway_error(self):
        gateway = gateway_with(lambda request: httpx.Response(503, text="upstream down"))
        with pytest.raises(GatewayError):
            await gateway.verify("RMS_1")

    async def test_timeout_is_gateway_error(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(GatewayError) as exc_info:
            await gateway_with(handler).verify("RMS_1")
        assert exc_info.value.detail == "Payment gateway timed out"

    async def test_refund_payload(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"status": True, "data": {"status": "pending"}})

        await gateway_with(handler).refund("RMS_1", Decimal("12.50"))
        assert seen == {"path": "/refund", "body": {"transaction": "RMS_1", "amount": 1250}}
