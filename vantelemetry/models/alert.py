from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from .common import format_timestamp, parse_timestamp, utcnow
from .types import AlertSeverity, parse_enum


@dataclass
class Alert:
    severity: AlertSeverity
    source: str  # id of the originating entity
    message: str
    id: str = ""
    timestamp: datetime = field(default_factory=utcnow)
    acknowledged: bool = False
    acknowledged_at: Optional[datetime] = None

    @property
    def dedup_key(self):
        return (self.source, self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'timestamp': format_timestamp(self.timestamp),
            'severity': self.severity.value,
            'source': self.source,
            'message': self.message,
            'acknowledged': self.acknowledged,
            'acknowledged_at': format_timestamp(self.acknowledged_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Alert":
        return cls(
            id=str(data.get('id') or ""),
            severity=parse_enum(AlertSeverity, data.get('severity'), AlertSeverity.INFO),
            source=str(data.get('source', "")),
            message=data.get('message', ""),
            timestamp=parse_timestamp(data.get('timestamp')) or utcnow(),
            acknowledged=bool(data.get('acknowledged', False)),
            acknowledged_at=parse_timestamp(data.get('acknowledged_at')),
        )
