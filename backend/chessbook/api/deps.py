"""
Request-scoped dependencies shared by the route modules.

Everything a service needs from the outside world (feature flags, gateway,
notifier, audit sink) is injected here, so tests swap implementations with
app.dependency_overrides.
"""

from chessbook.core.feature_flags import BookingPolicy, feature_flags
from chessbook.services.audit import LogAuditSink
from chessbook.services.gateway_factory import get_payment_gateway
from chessbook.services.interfaces.audit import AuditSink
from chessbook.services.interfaces.notifier import BookingNotifier
from chessbook.services.interfaces.payment_gateway import PaymentGateway
from chessbook.services.notifications import LogNotifier

_notifier = LogNotifier()
_audit_sink = LogAuditSink()


async def get_policy() -> BookingPolicy:
    """Feature-flag snapshot for this request."""
    return await feature_flags.get()


def get_gateway() -> PaymentGateway:
    return get_payment_gateway()


def get_notifier() -> BookingNotifier:
    return _notifier


def get_audit_sink() -> AuditSink:
    return _audit_sink
