# Appointment.py
from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional, Union
from datetime import datetime, timezone

from dateutil import parser as dtparse

STATUS_PENDING = "pending"
STATUS_CANCELLED = "cancelado"

AppointmentId = Union[int, str]


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Converte o valor vindo do banco (ISO-8601) em datetime com fuso UTC."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        dt = dtparse.isoparse(str(value))
    # Sem fuso no fio = UTC
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


@dataclass
class Appointment:
    id: AppointmentId
    user_id: Optional[str] = None
    phone_number: str = ""
    message_text: str = ""
    scheduled_for: Optional[datetime] = None   # UTC
    status: Optional[str] = None               # pending | cancelado | legado
    created_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, row: Dict[str, Any]) -> "Appointment":
        """Monta um Appointment a partir de uma linha de scheduled_messages."""
        return cls(
            id=row["id"],
            user_id=row.get("user_id"),
            phone_number=row.get("phone_number") or "",
            message_text=row.get("message_text") or "",
            scheduled_for=parse_timestamp(row.get("scheduled_for")),
            status=row.get("status"),
            created_at=parse_timestamp(row.get("created_at")),
        )

    @property
    def is_pending(self) -> bool:
        return self.status == STATUS_PENDING

    @property
    def is_cancelled(self) -> bool:
        return self.status == STATUS_CANCELLED

    def to_dict(self):
        return asdict(self)
