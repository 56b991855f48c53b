# backend/filters.py
"""
Regras puras da lista de agendamentos: janela do dia, filtro do PostgREST,
ordenação em dois níveis, busca por telefone e ids selecionáveis.
Nada aqui faz I/O.
"""
import functools
from datetime import datetime, timedelta, timezone
from typing import FrozenSet, Iterable, List, Optional, Set, Tuple

import pytz

from models.appointment import Appointment, AppointmentId, STATUS_CANCELLED, STATUS_PENDING


def to_wire(dt: datetime) -> str:
    """UTC no mesmo formato do toISOString() do navegador."""
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.000Z")


def day_window(now: datetime, tz_name: str) -> Tuple[datetime, datetime]:
    """
    Devolve (início de hoje, início de amanhã) na hora local de `tz_name`,
    já convertidos para UTC.
    """
    tz = pytz.timezone(tz_name)
    if now.tzinfo is None:
        local_now = tz.localize(now)
    else:
        local_now = now.astimezone(tz)

    today = local_now.date()
    tomorrow = today + timedelta(days=1)
    start = tz.localize(datetime(today.year, today.month, today.day))
    end = tz.localize(datetime(tomorrow.year, tomorrow.month, tomorrow.day))
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def visible_filter(start_of_today: datetime, start_of_tomorrow: datetime) -> str:
    """Expressão `or` do PostgREST: pendentes, ou cancelados de hoje."""
    return (
        f"status.eq.{STATUS_PENDING},"
        f"and(status.eq.{STATUS_CANCELLED},"
        f"scheduled_for.gte.{to_wire(start_of_today)},"
        f"scheduled_for.lt.{to_wire(start_of_tomorrow)})"
    )


_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def compare_appointments(a: Appointment, b: Appointment) -> int:
    # Só o par pending/cancelado decide pelo status; o resto vai pela data
    if a.status == STATUS_PENDING and b.status == STATUS_CANCELLED:
        return -1
    if a.status == STATUS_CANCELLED and b.status == STATUS_PENDING:
        return 1
    da = a.scheduled_for or _EPOCH
    db = b.scheduled_for or _EPOCH
    return (da > db) - (da < db)


def sort_appointments(appointments: Iterable[Appointment]) -> List[Appointment]:
    return sorted(appointments, key=functools.cmp_to_key(compare_appointments))


def filter_by_phone(appointments: Iterable[Appointment], term: Optional[str]) -> List[Appointment]:
    """Substring simples, sensível a maiúsculas, sem normalizar."""
    if not term:
        return list(appointments)
    return [a for a in appointments if term in (a.phone_number or "")]


def selectable_ids(appointments: Iterable[Appointment]) -> Set[AppointmentId]:
    return {a.id for a in appointments if not a.is_cancelled}


def prune_selection(
    selected: Iterable[AppointmentId], appointments: Iterable[Appointment], term: Optional[str]
) -> FrozenSet[AppointmentId]:
    """Mantém só ids visíveis com a busca atual e não cancelados."""
    allowed = selectable_ids(filter_by_phone(appointments, term))
    return frozenset(i for i in selected if i in allowed)
