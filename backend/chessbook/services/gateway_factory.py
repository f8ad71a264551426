"""
Payment gateway factory.
Configures which PaymentGateway implementation the API hands to services.
"""

from typing import Optional

from chessbook.core.config import get_settings
from chessbook.core.logging import get_logger
from chessbook.infrastructure.razorpay_gateway import RazorpayGateway
from chessbook.services.interfaces.payment_gateway import PaymentGateway

logger = get_logger(__name__)


def build_payment_gateway() -> PaymentGateway:
    """
    Build the configured gateway.

    Only Razorpay is wired today. Tests replace the gateway through the
    get_payment_gateway dependency instead of configuration.
    """
    settings = get_settings()
    if not settings.RAZORPAY_KEY_ID or not settings.RAZORPAY_KEY_SECRET:
        logger.warning("payment_gateway_unconfigured", gateway="razorpay")
    return RazorpayGateway(
        settings.RAZORPAY_KEY_ID,
        settings.RAZORPAY_KEY_SECRET,
        timeout=settings.GATEWAY_TIMEOUT_SECONDS,
    )


# Singleton instance
_gateway: Optional[PaymentGateway] = None


def get_payment_gateway() -> PaymentGateway:
    """Get payment gateway singleton."""
    global _gateway
    if _gateway is None:
        _gateway = build_payment_gateway()
    return _gateway
