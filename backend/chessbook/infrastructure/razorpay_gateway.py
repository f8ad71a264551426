"""
Razorpay implementation of the PaymentGateway interface.

The razorpay SDK is synchronous (requests under the hood), so calls run in a
worker thread and are bounded by GATEWAY_TIMEOUT_SECONDS. A timed-out call
raises GatewayUnavailable; because the caller only writes a Payment row after
create_order returns, a timeout never leaves an orphaned local record.
"""

import asyncio
import time

import razorpay
from razorpay.errors import BadRequestError, GatewayError, ServerError, SignatureVerificationError

from chessbook.core.errors import GatewayRejected, GatewayUnavailable
from chessbook.core.logging import get_logger
from chessbook.core.metrics import gateway_latency
from chessbook.services.interfaces.payment_gateway import GatewayOrder, GatewayRefund, PaymentGateway

logger = get_logger(__name__)


class RazorpayGateway(PaymentGateway):
    def __init__(self, key_id: str, key_secret: str, timeout: float = 10.0):
        self.key_id = key_id
        self.timeout = timeout
        self.client = razorpay.Client(auth=(key_id, key_secret))

    async def _call(self, operation: str, fn, *args):
        start = time.perf_counter()
        try:
            return await asyncio.wait_for(asyncio.to_thread(fn, *args), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning("gateway_timeout", operation=operation, timeout=self.timeout)
            raise GatewayUnavailable(f"Payment gateway timed out during {operation}")
        except BadRequestError as e:
            logger.warning("gateway_rejected", operation=operation, error=str(e))
            raise GatewayRejected(f"Payment gateway rejected {operation}: {e}")
        except (ServerError, GatewayError, OSError) as e:
            # requests' exceptions derive from OSError
            logger.warning("gateway_unavailable", operation=operation, error=str(e))
            raise GatewayUnavailable(f"Payment gateway unavailable during {operation}")
        finally:
            gateway_latency.labels(operation=operation).observe(time.perf_counter() - start)

    async def create_order(self, amount: int, currency: str, receipt: str) -> GatewayOrder:
        order = await self._call(
            "create_order",
            self.client.order.create,
            {"amount": amount, "currency": currency, "receipt": receipt},
        )
        logger.info("gateway_order_created", order_id=order["id"], amount=amount, receipt=receipt)
        return GatewayOrder(
            order_id=order["id"],
            amount=order.get("amount", amount),
            currency=order.get("currency", currency),
            raw=order,
        )

    def verify_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        try:
            self.client.utility.verify_payment_signature(
                {
                    "razorpay_order_id": order_id,
                    "razorpay_payment_id": payment_id,
                    "razorpay_signature": signature,
                }
            )
        except SignatureVerificationError:
            return False
        return True

    async def refund(self, payment_id: str, amount: int) -> GatewayRefund:
        refund = await self._call(
            "refund",
            self.client.payment.refund,
            payment_id,
            {"amount": amount, "speed": "normal"},
        )
        logger.info("gateway_refund_created", payment_id=payment_id, refund_id=refund["id"])
        return GatewayRefund(refund_id=refund["id"], status=refund.get("status", "processed"), raw=refund)
