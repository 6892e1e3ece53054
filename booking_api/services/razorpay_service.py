"""
Razorpay Service
Creates orders and fetches payments over the Razorpay REST API
"""

import logging
from typing import Any, Optional

import httpx

from ..exceptions import ConfigurationError, UpstreamError
from ..webhook_security import verify_payment_signature

logger = logging.getLogger(__name__)


class RazorpayClient:
    def __init__(
        self,
        key_id: Optional[str],
        key_secret: Optional[str],
        api_url: str = "https://api.razorpay.com/v1",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.key_id = key_id
        self.key_secret = key_secret
        self.api_url = api_url.rstrip("/")
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.key_id and self.key_secret)

    def _require_credentials(self):
        if not self.configured:
            raise ConfigurationError("Razorpay credentials are not configured")

    async def _request(self, method: str, path: str, **kwargs) -> dict[str, Any]:
        self._require_credentials()
        try:
            async with httpx.AsyncClient(
                timeout=30.0,
                auth=(self.key_id, self.key_secret),
                transport=self._transport,
            ) as http_client:
                response = await http_client.request(method, f"{self.api_url}{path}", **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"❌ Razorpay request {method} {path} failed: {str(e)}")
            raise UpstreamError("Payment gateway unavailable") from e

        if response.status_code >= 400:
            try:
                description = response.json().get("error", {}).get("description")
            except ValueError:
                description = None
            logger.error(f"❌ Razorpay {method} {path} returned {response.status_code}: {response.text}")
            raise UpstreamError(description or f"Payment gateway error ({response.status_code})")

        return response.json()

    async def create_order(
        self, amount: int, currency: str, receipt: str, notes: Optional[dict] = None
    ) -> dict[str, Any]:
        """Amount in paise. Returns the gateway order (id, amount, currency, ...)"""
        order = await self._request(
            "POST",
            "/orders",
            json={"amount": amount, "currency": currency, "receipt": receipt, "notes": notes or {}},
        )
        logger.info(f"💳 Razorpay order created: {order.get('id')} ({amount} {currency})")
        return order

    async def fetch_payment(self, payment_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/payments/{payment_id}")

    def verify_signature(self, order_id: str, payment_id: str, signature: Optional[str]) -> bool:
        self._require_credentials()
        return verify_payment_signature(order_id, payment_id, signature, self.key_secret)
