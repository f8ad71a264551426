"""
Audit persistence interface.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class AuditRecord:
    admin_id: int
    action: str
    entity_type: str  # BOOKING or PAYMENT
    entity_id: int
    old_value: Optional[dict]
    new_value: Optional[dict]


class AuditSink(ABC):
    @abstractmethod
    async def record(self, entry: AuditRecord) -> None:
        pass
