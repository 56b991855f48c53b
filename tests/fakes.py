import asyncio
from datetime import datetime, timezone
from types import SimpleNamespace

from backend.errors import FetchError, MutationError, SubscriptionError
from backend.session import Identity
from models.appointment import Appointment, parse_timestamp

# Meio-dia em São Paulo
FIXED_NOW = datetime(2024, 1, 1, 15, 0, tzinfo=timezone.utc)


def make_appt(id, status="pending", scheduled_for="2024-01-01T12:00Z", phone="11999", user_id="u1"):
    return Appointment(
        id=id,
        user_id=user_id,
        phone_number=phone,
        message_text=f"mensagem {id}",
        scheduled_for=parse_timestamp(scheduled_for),
        status=status,
    )


class FakeSubscription:
    def __init__(self, user_id, on_event, on_status):
        self.user_id = user_id
        self.on_event = on_event
        self.on_status = on_status
        self.unsubscribed = False

    async def unsubscribe(self):
        self.unsubscribed = True


class FakeQueryService:
    """Serviço em memória com o mesmo contrato de AppointmentQueryService."""

    def __init__(self, rows=None):
        self.rows = list(rows or [])
        self.select_calls = []
        self.cancel_calls = []
        self.subscribe_calls = []
        self.subscriptions = []
        self.select_error = None
        self.cancel_error = None
        self.subscribe_failures = 0
        self._select_gates = []
        self._cancel_gates = []

    def hold_next_select(self) -> asyncio.Event:
        gate = asyncio.Event()
        self._select_gates.append(gate)
        return gate

    def hold_next_cancel(self) -> asyncio.Event:
        gate = asyncio.Event()
        self._cancel_gates.append(gate)
        return gate

    async def select_visible(self, user_id, start_of_today, start_of_tomorrow):
        self.select_calls.append((user_id, start_of_today, start_of_tomorrow))
        result = [r for r in self.rows if r.user_id == user_id]
        error = self.select_error
        if self._select_gates:
            await self._select_gates.pop(0).wait()
        if error is not None:
            raise FetchError(error)
        return result

    async def cancel(self, user_id, ids):
        ids = list(ids)
        self.cancel_calls.append((user_id, ids))
        error = self.cancel_error
        if self._cancel_gates:
            await self._cancel_gates.pop(0).wait()
        if error is not None:
            raise MutationError(error)
        changed = []
        for r in self.rows:
            if r.user_id == user_id and r.id in ids:
                r.status = "cancelado"
                changed.append(r.to_dict())
        return changed

    async def subscribe(self, user_id, on_event, on_status=None):
        self.subscribe_calls.append(user_id)
        if self.subscribe_failures > 0:
            self.subscribe_failures -= 1
            raise SubscriptionError(f"canal de {user_id} falhou", "CHANNEL_ERROR")
        sub = FakeSubscription(user_id, on_event, on_status)
        self.subscriptions.append(sub)
        if on_status is not None:
            on_status("SUBSCRIBED", None)
        return sub

    def open_subscriptions(self):
        return [s for s in self.subscriptions if not s.unsubscribed]


class FakeSessionProvider:
    def __init__(self, current=None):
        self.current = current
        self.listeners = []
        self.sign_out_ok = True
        self.sign_in_error = None

    async def sign_in(self, email, password):
        if self.sign_in_error is not None:
            raise self.sign_in_error
        self.current = Identity(id="u-" + email.split("@")[0], email=email)
        return self.current

    async def get_current_session(self):
        return self.current

    def on_session_change(self, callback):
        self.listeners.append(callback)
        return SimpleNamespace(unsubscribe=lambda: self.listeners.remove(callback))

    async def sign_out(self):
        self.current = None
        return self.sign_out_ok


def approve(_message):
    return True


def refuse(_message):
    return False
