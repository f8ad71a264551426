"""
Admin audit trail.

Admin overrides (status changes, offline settlement, refunds) emit an
AuditRecord after their transaction commits. Persistence is external; the
default LogAuditSink writes the record to the structured log. A failing
sink is logged and ignored.
"""

from typing import Optional

from chessbook.core.logging import get_logger
from chessbook.services.interfaces.audit import AuditRecord, AuditSink

logger = get_logger(__name__)

ENTITY_BOOKING = "BOOKING"
ENTITY_PAYMENT = "PAYMENT"


class LogAuditSink(AuditSink):
    async def record(self, entry: AuditRecord) -> None:
        logger.info(
            "admin_audit",
            admin_id=entry.admin_id,
            action=entry.action,
            entity_type=entry.entity_type,
            entity_id=entry.entity_id,
            old_value=entry.old_value,
            new_value=entry.new_value,
        )


async def emit_audit(
    sink: Optional[AuditSink],
    admin_id: int,
    action: str,
    entity_type: str,
    entity_id: int,
    old_value: Optional[dict] = None,
    new_value: Optional[dict] = None,
) -> None:
    if sink is None:
        return
    try:
        await sink.record(
            AuditRecord(
                admin_id=admin_id,
                action=action,
                entity_type=entity_type,
                entity_id=entity_id,
                old_value=old_value,
                new_value=new_value,
            )
        )
    except Exception as e:
        logger.error("admin_audit_failed", action=action, entity_id=entity_id, error=str(e))
