"""
Payment service client.

The payment processor is an external collaborator. We only need two calls:

    POST {payment_service_url}/authorize  {"amount", "method"}  -> 200 {"payment_id"}
    POST {payment_service_url}/capture    {"payment_id"}        -> 200 {"status": "captured"}

Any non-2xx answer is a decline. Timeouts, transport errors and an open
circuit are failures too; all of them surface as PaymentFailedError.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from courier_backend.app.core.config import settings
from courier_backend.app.core.exceptions import PaymentFailedError
from courier_backend.app.core.reliability import CircuitBreaker, CircuitOpenError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PaymentAuthorization:
    payment_id: str
    amount: float
    method: str


class PaymentGateway:
    """Interface of the external payment service."""

    async def authorize(self, amount: float, method: str) -> PaymentAuthorization:  # pragma: no cover - interface
        raise NotImplementedError

    async def capture(self, payment_id: str) -> bool:  # pragma: no cover - interface
        """True when captured, False when declined."""
        raise NotImplementedError


class HttpPaymentGateway(PaymentGateway):

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        breaker: Optional[CircuitBreaker] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.breaker = breaker or CircuitBreaker()
        self._transport = transport

    async def _post(self, path: str, payload: dict) -> httpx.Response:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            return await client.post(f"{self.base_url}{path}", json=payload)

    async def _call(self, path: str, payload: dict) -> httpx.Response:
        try:
            return await self.breaker.call(self._post, path, payload)
        except CircuitOpenError as exc:
            raise PaymentFailedError("Payment service unavailable, try again later") from exc
        except httpx.TimeoutException as exc:
            logger.warning("Payment service timed out on %s", path)
            raise PaymentFailedError("Payment service timed out") from exc
        except httpx.HTTPError as exc:
            logger.warning("Payment service unreachable on %s: %s", path, exc)
            raise PaymentFailedError("Payment service unreachable") from exc

    @staticmethod
    def _reason(response: httpx.Response) -> str:
        try:
            return response.json().get("reason") or response.text
        except ValueError:
            return response.text

    async def authorize(self, amount: float, method: str) -> PaymentAuthorization:
        response = await self._call("/authorize", {"amount": amount, "method": method})

        if not response.is_success:
            reason = self._reason(response)
            logger.info("Payment authorization declined: %s", reason)
            raise PaymentFailedError(
                f"Payment declined: {reason}",
                details={"status_code": response.status_code}
            )

        payment_id = response.json().get("payment_id")
        if not payment_id:
            raise PaymentFailedError("Payment service returned no payment id")

        return PaymentAuthorization(payment_id=str(payment_id), amount=amount, method=method)

    async def capture(self, payment_id: str) -> bool:
        response = await self._call("/capture", {"payment_id": payment_id})

        if not response.is_success:
            logger.info("Payment capture declined for %s: %s", payment_id, self._reason(response))
            return False

        return response.json().get("status") == "captured"


payment_gateway = HttpPaymentGateway(
    settings.payment_service_url,
    timeout=settings.payment_timeout_seconds,
    breaker=CircuitBreaker(
        failure_threshold=settings.payment_failure_threshold,
        reset_timeout=settings.payment_reset_timeout,
    ),
)


def get_payment_gateway() -> PaymentGateway:
    """FastAPI dependency for the payment service client."""
    return payment_gateway
