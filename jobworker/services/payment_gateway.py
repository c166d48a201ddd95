"""Refund gateway adapter.

When Razorpay credentials are configured refunds go to the provider API.
Without credentials the refund is recorded for manual settlement and the
provider reference is ``manual:<refund_id>``.
"""

from decimal import Decimal
from typing import Any, Optional

import httpx
import structlog

from jobworker.config import Settings

logger = structlog.get_logger(__name__)

# Provider returns the existing refund for a repeated key
IDEMPOTENCY_HEADER = "X-Refund-Idempotency"


class RefundGatewayError(Exception):
    """Raised when the provider rejects or fails a refund call."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RefundGateway:
    """Creates refunds at the payment provider."""

    def __init__(
        self,
        key_id: Optional[str] = None,
        key_secret: Optional[str] = None,
        base_url: str = "https://api.razorpay.com/v1",
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.key_id = key_id
        self.key_secret = key_secret
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> "RefundGateway":
        return cls(
            key_id=settings.razorpay_key_id,
            key_secret=settings.razorpay_key_secret,
            base_url=settings.razorpay_base_url,
            timeout=settings.provider_timeout_s,
        )

    @property
    def configured(self) -> bool:
        return bool(self.key_id and self.key_secret)

    async def create_refund(
        self,
        refund_id: str,
        payment_id: Optional[str],
        amount: Optional[Decimal] = None,
    ) -> str:
        """Create a refund and return the provider refund reference.

        Raises:
            RefundGatewayError: provider call failed or payment_id missing
        """
        if not self.configured:
            logger.info("refund_recorded_manual", refund_id=refund_id)
            return f"manual:{refund_id}"

        if not payment_id:
            raise RefundGatewayError(f"refund {refund_id} has no payment_id")

        body: dict[str, Any] = {"notes": {"refund_request_id": refund_id}}
        if amount is not None:
            # Provider amounts are in the smallest currency unit
            body["amount"] = int(Decimal(amount) * 100)

        url = f"{self.base_url}/payments/{payment_id}/refund"
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                auth=(self.key_id, self.key_secret),
                transport=self._transport,
            ) as client:
                response = await client.post(
                    url,
                    json=body,
                    headers={IDEMPOTENCY_HEADER: refund_id},
                )
                response.raise_for_status()
                data = response.json()
        except httpx.TimeoutException as e:
            raise RefundGatewayError(f"refund request timed out: {e}") from e
        except httpx.HTTPStatusError as e:
            raise RefundGatewayError(
                f"refund request failed with status {e.response.status_code}",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            raise RefundGatewayError(f"refund request failed: {e}") from e

        provider_refund_id = data.get("id")
        if not provider_refund_id:
            raise RefundGatewayError("provider response missing refund id")

        logger.info(
            "refund_created",
            refund_id=refund_id,
            payment_id=payment_id,
            provider_refund_id=provider_refund_id,
        )
        return provider_refund_id
