# orderhub/services/payment/paystack_gateway.py
import hashlib
import hmac
import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional

import httpx

from orderhub.core.config import settings
from orderhub.core.exceptions import GatewayError, InvalidSignatureError

logger = logging.getLogger(__name__)

ALL_CHANNELS = ['card', 'bank', 'ussd', 'mobile_money', 'mpesa', 'airtel', 'orange', 'vodafone']

# Transactions the customer may still complete; verify leaves the payment pending
UNSETTLED_STATUSES = frozenset({"ongoing", "pending", "processing", "queued"})

CHANNEL_MAP = {
    'card': ['card'],
    'bank': ['bank'],
    'ussd': ['ussd'],
    'mobile_money': ['mobile_money', 'mpesa', 'airtel', 'orange', 'vodafone'],
    'bank_transfer': ['bank_transfer'],
    'mpesa': ['mpesa'],
    'airtel': ['airtel'],
    'orange': ['orange'],
    'vodafone': ['vodafone'],
}


def get_channels(payment_method: Optional[str]) -> List[str]:
    """Provider channels to offer for a payment method; unknown methods get all of them"""
    return list(CHANNEL_MAP.get(payment_method or "", ALL_CHANNELS))


def to_minor_units(amount) -> int:
    """Major currency amount to the provider's minor unit (kobo, cents)"""
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_minor_units(amount: Optional[int]) -> Optional[Decimal]:
    if amount is None:
        return None
    return (Decimal(amount) / 100).quantize(Decimal("0.01"))


def parse_provider_time(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.warning(f"Unparseable provider timestamp: {value}")
        return None


@dataclass(frozen=True)
class InitializeResult:
    authorization_url: str
    access_code: str
    reference: str


@dataclass(frozen=True)
class ProviderOutcome:
    """Normalized result of a transaction, from a verify call or a webhook"""
    succeeded: bool
    reference: str
    amount: Optional[Decimal] = None
    paid_at: Optional[datetime] = None
    channel: Optional[str] = None
    gateway_response: Optional[str] = None
    transaction_id: Optional[str] = None
    settled: bool = True
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_transaction(cls, data: Dict[str, Any], succeeded: Optional[bool] = None) -> "ProviderOutcome":
        settled = True
        if succeeded is None:
            provider_status = data.get("status")
            succeeded = provider_status == "success"
            settled = provider_status not in UNSETTLED_STATUSES
        transaction_id = data.get("id")
        return cls(
            succeeded=succeeded,
            reference=data.get("reference", ""),
            amount=from_minor_units(data.get("amount")),
            paid_at=parse_provider_time(data.get("paid_at") or data.get("paidAt")),
            channel=data.get("channel"),
            gateway_response=data.get("gateway_response"),
            transaction_id=str(transaction_id) if transaction_id is not None else None,
            settled=settled,
            raw=data,
        )


class PaystackGateway:
    """Async Paystack client.

    Every provider failure (timeout, transport error, non-2xx, ``status: false``)
    is raised as :class:`GatewayError`; nothing is treated as success unless the
    provider said so.
    """

    def __init__(
        self,
        secret_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.secret_key = secret_key or settings.PAYSTACK_SECRET_KEY
        self.base_url = (base_url or settings.PAYSTACK_BASE_URL).rstrip("/")
        self.timeout = httpx.Timeout(timeout or settings.GATEWAY_TIMEOUT_SECONDS)
        self.transport = transport

    async def initialize(
        self,
        amount,
        currency: str,
        email: str,
        reference: str,
        callback_url: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        channels: Optional[List[str]] = None,
    ) -> InitializeResult:
        payload = {
            "email": email,
            "amount": to_minor_units(amount),
            "reference": reference,
            "currency": currency,
            "channels": channels or ALL_CHANNELS,
            "metadata": metadata or {},
        }
        if callback_url:
            payload["callback_url"] = callback_url

        data = await self._request("POST", "/transaction/initialize", json=payload)
        logger.info(f"Paystack transaction initialized: {reference}")
        return InitializeResult(
            authorization_url=data.get("authorization_url", ""),
            access_code=data.get("access_code", ""),
            reference=data.get("reference", reference),
        )

    async def verify(self, reference: str) -> ProviderOutcome:
        data = await self._request("GET", f"/transaction/verify/{reference}")
        outcome = ProviderOutcome.from_transaction(data)
        logger.info(f"Paystack verify {reference}: {data.get('status')}")
        return outcome

    async def refund(self, reference: str, amount=None) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"transaction": reference}
        if amount is not None:
            payload["amount"] = to_minor_units(amount)
        data = await self._request("POST", "/refund", json=payload)
        logger.info(f"Paystack refund requested for {reference}")
        return data

    def compute_signature(self, raw_payload: bytes) -> str:
        return hmac.new(self.secret_key.encode("utf-8"), raw_payload, hashlib.sha512).hexdigest()

    def verify_signature(self, raw_payload: bytes, signature: Optional[str]):
        """HMAC-SHA512 of the raw body must match the signature header"""
        if not signature:
            raise InvalidSignatureError("Missing webhook signature")
        expected = self.compute_signature(raw_payload)
        if not hmac.compare_digest(expected, signature.strip().lower()):
            raise InvalidSignatureError()

    async def _request(self, method: str, path: str, json: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        headers = {
            "Authorization": f"Bearer {self.secret_key}",
            "Content-Type": "application/json",
        }
        client_kwargs = {"base_url": self.base_url, "timeout": self.timeout}
        if self.transport is not None:
            client_kwargs["transport"] = self.transport

        async with httpx.AsyncClient(**client_kwargs) as client:
            try:
                response = await client.request(method, path, json=json, headers=headers)
            except httpx.TimeoutException as e:
                logger.error(f"Paystack {method} {path} timed out: {str(e)}")
                raise GatewayError("Payment gateway timed out")
            except httpx.HTTPError as e:
                logger.error(f"Paystack {method} {path} failed: {str(e)}")
                raise GatewayError("Payment gateway unreachable")

        try:
            body = response.json()
        except ValueError:
            body = {"message": response.text}
        if not isinstance(body, dict):
            body = {"message": str(body)}

        if not response.is_success:
            logger.error(f"Paystack {method} {path} returned {response.status_code}: {body}")
            raise GatewayError(body.get("message") or f"Payment gateway returned {response.status_code}")
        if not body.get("status"):
            logger.error(f"Paystack {method} {path} rejected: {body}")
            raise GatewayError(body.get("message") or "Payment gateway rejected the request")

        return body.get("data") or {}
