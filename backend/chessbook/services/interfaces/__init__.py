"""
Service interfaces for dependency inversion.
Lets the core talk to the payment gateway, notification delivery and audit
persistence without knowing which implementation is wired in.
"""

from .payment_gateway import GatewayOrder, GatewayRefund, PaymentGateway, compute_signature
from .notifier import BookingConfirmedNotice, BookingNotifier
from .audit import AuditRecord, AuditSink

__all__ = [
    'PaymentGateway', 'GatewayOrder', 'GatewayRefund', 'compute_signature',
    'BookingNotifier', 'BookingConfirmedNotice',
    'AuditSink', 'AuditRecord',
]
