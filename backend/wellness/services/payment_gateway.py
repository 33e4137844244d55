# backend/wellness/services/payment_gateway.py
"""
Payment gateway client (Razorpay-compatible HTTP API).

Only two things are consumed from the gateway: creating an order for an
amount, and checking the HMAC signature it attaches to a completed
payment. When no credentials are configured the client runs in mock mode
and issues local order ids, which keeps development and tests offline.
"""

from dataclasses import dataclass
import hashlib
import hmac
import logging
from typing import Any, Dict, Optional, cast

import httpx
import ulid

from ..core.config import settings
from ..core.exceptions import UpstreamFailureException

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GatewayOrder:
    order_id: str
    amount_minor: int
    currency: str
    key_id: str
    is_mock: bool = False


def compute_signature(order_id: str, payment_id: str, secret: str) -> str:
    """Hex HMAC-SHA256 of "order_id|payment_id" keyed with the gateway secret."""
    message = f"{order_id}|{payment_id}".encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


class PaymentGatewayClient:
    """Thin synchronous client over the gateway's orders endpoint."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        key_id: Optional[str] = None,
        key_secret: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.base_url = (base_url or settings.payment_gateway_base_url).rstrip("/")
        self.key_id = settings.payment_gateway_key_id if key_id is None else key_id
        self.key_secret = (
            settings.payment_gateway_key_secret.get_secret_value()
            if key_secret is None
            else key_secret
        )
        self.timeout = timeout or settings.payment_gateway_timeout_seconds
        self.transport = transport

    @property
    def is_mock(self) -> bool:
        return not (self.key_id and self.key_secret)

    def create_order(self, amount_minor: int, currency: str, receipt: str) -> GatewayOrder:
        """
        Create a gateway order for an amount in minor units (paise, cents).

        Raises:
            UpstreamFailureException: The gateway could not be reached or
                rejected the request
        """
        if self.is_mock:
            order_id = f"order_mock_{ulid.ULID()}"
            logger.info(f"Payment gateway not configured; issued mock order {order_id}")
            return GatewayOrder(order_id, amount_minor, currency, "mock_key", is_mock=True)

        payload: Dict[str, Any] = {
            "amount": amount_minor,
            "currency": currency,
            "receipt": receipt,
            "payment_capture": 1,
        }
        url = f"{self.base_url}/orders"
        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                response = client.post(
                    url, json=payload, auth=httpx.BasicAuth(self.key_id, self.key_secret)
                )
                response.raise_for_status()
                data = cast(Dict[str, Any], response.json())
        except httpx.TimeoutException as exc:
            logger.warning("Payment gateway timeout: %s", url)
            raise UpstreamFailureException(
                "Payment gateway timed out", code="PAYMENT_GATEWAY_TIMEOUT"
            ) from exc
        except httpx.HTTPError as exc:
            logger.warning("Payment gateway error: %s - %s", url, exc)
            raise UpstreamFailureException(
                "Payment gateway request failed", code="PAYMENT_GATEWAY_ERROR"
            ) from exc

        order_id = data.get("id")
        if not order_id:
            raise UpstreamFailureException(
                "Payment gateway returned no order id", code="PAYMENT_GATEWAY_ERROR"
            )
        return GatewayOrder(
            order_id=str(order_id),
            amount_minor=int(data.get("amount", amount_minor)),
            currency=str(data.get("currency", currency)),
            key_id=self.key_id,
        )

    def verify_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        """Constant-time check of the signature the gateway returned to the client."""
        if self.is_mock:
            return payment_id.startswith("pay_mock_")
        expected = compute_signature(order_id, payment_id, self.key_secret)
        return hmac.compare_digest(expected, signature or "")
