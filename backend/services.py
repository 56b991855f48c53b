# backend/services.py
import asyncio
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence

from postgrest.exceptions import APIError

from models.appointment import Appointment, AppointmentId, STATUS_CANCELLED
from .errors import FetchError, MutationError, SubscriptionError
from .filters import visible_filter

logger = logging.getLogger(__name__)

StatusCallback = Callable[[str, Optional[Exception]], None]


def _error_message(e: Exception) -> str:
    if isinstance(e, APIError):
        return e.message or str(e)
    return str(e)


def channel_name(user_id: str) -> str:
    return f"scheduled_messages_user_{user_id}"


class ChangeSubscription:
    """Canal realtime aberto para um usuário."""

    def __init__(self, client, channel, name: str):
        self.client = client
        self.channel = channel
        self.name = name
        self.closed = False

    async def unsubscribe(self):
        if self.closed:
            return
        self.closed = True
        try:
            await self.client.remove_channel(self.channel)
        except Exception as e:
            logger.warning("Erro ao remover o canal %s: %s", self.name, e)
        else:
            logger.info("Canal %s removido", self.name)


class AppointmentQueryService:
    """Leituras, cancelamentos e notificações da tabela de agendamentos."""

    def __init__(self, client, table: str = "scheduled_messages", schema: str = "public"):
        self.client = client
        self.table = table
        self.schema = schema

    async def select_visible(
        self, user_id: str, start_of_today: datetime, start_of_tomorrow: datetime
    ) -> List[Appointment]:
        """Pendentes do usuário + cancelados com data dentro de hoje."""
        try:
            resp = await (
                self.client.table(self.table)
                .select("*")
                .eq("user_id", user_id)
                .or_(visible_filter(start_of_today, start_of_tomorrow))
                .execute()
            )
        except Exception as e:
            raise FetchError(_error_message(e)) from e
        return [Appointment.from_record(r) for r in (resp.data or [])]

    async def cancel(self, user_id: str, ids: Sequence[AppointmentId]) -> List[Dict[str, Any]]:
        """
        Marca como cancelado. Um id vira `.eq`, vários viram `.in_`;
        sempre restrito ao user_id da sessão.
        """
        ids = list(ids)
        if not ids:
            return []
        query = self.client.table(self.table).update({"status": STATUS_CANCELLED})
        if len(ids) == 1:
            query = query.eq("id", ids[0])
        else:
            query = query.in_("id", ids)
        try:
            resp = await query.eq("user_id", user_id).execute()
        except Exception as e:
            raise MutationError(_error_message(e)) from e
        return resp.data or []

    async def subscribe(
        self,
        user_id: str,
        on_event: Callable[[Dict[str, Any]], None],
        on_status: Optional[StatusCallback] = None,
    ) -> ChangeSubscription:
        name = channel_name(user_id)

        def _status(status, err=None):
            value = getattr(status, "value", status)
            if on_status is not None:
                on_status(str(value), err)

        channel = None
        try:
            channel = self.client.channel(name)
            channel.on_postgres_changes(
                event="*",
                schema=self.schema,
                table=self.table,
                filter=f"user_id=eq.{user_id}",
                callback=on_event,
            )
            await channel.subscribe(_status)
        except asyncio.CancelledError:
            # Troca de usuário no meio do subscribe: o canal não pode ficar no socket
            await self._discard(channel, name)
            raise
        except Exception as e:
            await self._discard(channel, name)
            raise SubscriptionError(f"Erro ao subscrever ao canal {name}: {e}") from e
        return ChangeSubscription(self.client, channel, name)

    async def _discard(self, channel, name: str):
        if channel is not None:
            await ChangeSubscription(self.client, channel, name).unsubscribe()
