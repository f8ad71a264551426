"""
Payment gateway interface.
Any gateway integration must satisfy exactly these three operations.
"""

import hashlib
import hmac
from abc import ABC, abstractmethod
from dataclasses import dataclass, field


@dataclass(frozen=True)
class GatewayOrder:
    order_id: str
    amount: int  # minor units (paise)
    currency: str
    raw: dict = field(default_factory=dict, compare=False)


@dataclass(frozen=True)
class GatewayRefund:
    refund_id: str
    status: str
    raw: dict = field(default_factory=dict, compare=False)


def compute_signature(secret: str, order_id: str, payment_id: str) -> str:
    """HMAC-SHA256 over "order_id|payment_id", hex encoded."""
    body = f"{order_id}|{payment_id}".encode("utf-8")
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


class PaymentGateway(ABC):
    """
    Interface for online payment gateways.

    Implementations:
    - RazorpayGateway: Razorpay orders/refunds API (infrastructure/razorpay_gateway.py)
    """

    @abstractmethod
    async def create_order(self, amount: int, currency: str, receipt: str) -> GatewayOrder:
        """
        Open an order for `amount` minor units.

        Raises:
            GatewayUnavailable: network failure or timeout, safe to retry
        """
        pass

    @abstractmethod
    def verify_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        """
        Check the checkout signature against the shared secret.
        Must be a constant-time comparison of HMAC-SHA256("order_id|payment_id").
        """
        pass

    @abstractmethod
    async def refund(self, payment_id: str, amount: int) -> GatewayRefund:
        """
        Refund `amount` minor units of a captured payment.

        Raises:
            GatewayUnavailable / GatewayRejected: nothing was refunded
        """
        pass
