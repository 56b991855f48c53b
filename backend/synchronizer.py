# backend/synchronizer.py
"""
Mantém a lista de agendamentos do usuário logado em dia.

- bind(identity): troca de usuário (login/logout). Invalida buscas em voo,
  fecha o canal antigo, busca de novo e abre o canal do novo usuário.
- refresh(): busca, ordena e grava no store. Cada chamada recebe um token;
  resposta com token velho ou de outro usuário é descartada.
- Notificações do realtime chamam schedule_refresh(), que agrupa rajadas.
- Canal com CHANNEL_ERROR/TIMED_OUT é reaberto com backoff exponencial;
  esgotadas as tentativas o store fica em modo "degraded".
"""
import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from .config import DEFAULT_TIMEZONE
from .errors import FetchError, SubscriptionError
from .filters import day_window, prune_selection, sort_appointments
from .session import Identity
from .store import AppointmentStore

logger = logging.getLogger(__name__)

SUBSCRIBED = "SUBSCRIBED"
FAILED_STATES = ("CHANNEL_ERROR", "TIMED_OUT")

DEGRADED_NOTICE = "Atualização em tempo real indisponível. A lista será atualizada após cada ação."


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AppointmentSynchronizer:

    def __init__(
        self,
        service,
        store: AppointmentStore,
        tz_name: str = DEFAULT_TIMEZONE,
        debounce_seconds: float = 0.3,
        subscribe_max_attempts: int = 5,
        retry_base_seconds: float = 1.0,
        retry_max_seconds: float = 30.0,
        clock: Callable[[], datetime] = _utcnow,
        sleep=asyncio.sleep,
    ):
        self.service = service
        self.store = store
        self.tz_name = tz_name
        self.debounce_seconds = debounce_seconds
        self.subscribe_max_attempts = subscribe_max_attempts
        self.retry_base_seconds = retry_base_seconds
        self.retry_max_seconds = retry_max_seconds
        self.clock = clock
        self.sleep = sleep

        self.identity: Optional[Identity] = None
        self._token = 0
        self._failures = 0
        self._subscription = None
        self._subscribe_task: Optional[asyncio.Task] = None
        self._debounce_task: Optional[asyncio.Task] = None
        self._debounce_waiting = False
        self._refresh_again = False
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    # ------------------------------------------------------------------
    # Usuário
    # ------------------------------------------------------------------
    async def bind(self, identity: Optional[Identity]):
        if identity == self.identity:
            return
        self._loop = asyncio.get_running_loop()
        previous = self.identity

        # Nada do usuário anterior pode chegar ao store depois daqui
        self.identity = identity
        self._token += 1
        self._failures = 0
        await self._cancel_tasks()
        await self._teardown_subscription()
        if identity != self.identity:
            # Outro bind começou enquanto o canal antigo fechava
            return
        logger.info(
            "Troca de usuário: %s -> %s",
            previous.id if previous else None,
            identity.id if identity else None,
        )

        self.store.reset(loading=identity is not None)
        if identity is None:
            return

        await self.refresh()
        if self.identity == identity:
            self._subscribe_task = self._loop.create_task(self._keep_subscribed(identity, retry=False))

    async def close(self):
        await self.bind(None)

    def _is_current(self, token: int, identity: Identity) -> bool:
        return token == self._token and identity == self.identity

    # ------------------------------------------------------------------
    # Busca
    # ------------------------------------------------------------------
    async def refresh(self):
        identity = self.identity
        if identity is None or not identity.id:
            self.store.update(appointments=[], loading=False, selected=frozenset())
            return

        self._token += 1
        token = self._token
        start, end = day_window(self.clock(), self.tz_name)
        self.store.update(loading=True, error=None)

        try:
            rows = await self.service.select_visible(identity.id, start, end)
        except FetchError as e:
            if not self._is_current(token, identity):
                logger.debug("Erro de busca obsoleta (token %s) ignorado", token)
                return
            logger.warning("Erro ao buscar agendamentos de %s: %s", identity.id, e)
            self.store.update(appointments=[], error=str(e), loading=False, selected=frozenset())
            return

        if not self._is_current(token, identity):
            logger.debug("Resposta obsoleta (token %s) descartada", token)
            return

        appointments = sort_appointments(rows)
        state = self.store.snapshot()
        self.store.update(
            appointments=appointments,
            loading=False,
            selected=prune_selection(state.selected, appointments, state.search_term),
        )
        logger.debug("%d agendamento(s) carregado(s) para %s", len(appointments), identity.id)

    def schedule_refresh(self):
        """Agrupa notificações em sequência num único refresh."""
        identity = self.identity
        if identity is None or self._loop is None:
            return
        task = self._debounce_task
        if task is not None and not task.done():
            if not self._debounce_waiting:
                # Busca já em andamento: termina e roda mais uma depois
                self._refresh_again = True
                return
            task.cancel()
        self._debounce_waiting = True
        self._refresh_again = False
        self._debounce_task = self._loop.create_task(self._debounced_refresh(identity))

    async def _debounced_refresh(self, identity: Identity):
        while True:
            await self.sleep(self.debounce_seconds)
            self._debounce_waiting = False
            if identity != self.identity:
                return
            await self.refresh()
            if not self._refresh_again or identity != self.identity:
                return
            self._refresh_again = False
            self._debounce_waiting = True

    # ------------------------------------------------------------------
    # Realtime
    # ------------------------------------------------------------------
    def _backoff(self, failures: int) -> float:
        return min(self.retry_base_seconds * (2 ** max(failures - 1, 0)), self.retry_max_seconds)

    async def _keep_subscribed(self, identity: Identity, retry: bool):
        while identity == self.identity:
            if retry:
                if self._failures >= self.subscribe_max_attempts:
                    logger.error(
                        "Canal de %s falhou %d vezes; seguindo sem tempo real",
                        identity.id,
                        self._failures,
                    )
                    self.store.update(subscription_status="degraded", notice=DEGRADED_NOTICE)
                    return
                delay = self._backoff(self._failures)
                self.store.update(subscription_status="retrying")
                logger.info("Nova tentativa de canal para %s em %.1fs", identity.id, delay)
                await self.sleep(delay)
                if identity != self.identity:
                    return
            retry = True

            try:
                subscription = await self.service.subscribe(
                    identity.id,
                    lambda payload: self._on_change(identity, payload),
                    lambda status, err=None: self._on_status(identity, status, err),
                )
            except SubscriptionError as e:
                self._failures += 1
                logger.warning("Falha ao abrir canal (%d): %s", self._failures, e)
                continue

            if identity != self.identity:
                await subscription.unsubscribe()
                return
            self._subscription = subscription
            return

    def _on_change(self, identity: Identity, payload):
        if identity != self.identity or self._loop is None:
            return
        logger.debug("Alteração recebida para %s: %s", identity.id, payload)
        self._loop.call_soon_threadsafe(self.schedule_refresh)

    def _on_status(self, identity: Identity, status: str, err=None):
        if identity != self.identity:
            return
        if status == SUBSCRIBED:
            self._failures = 0
            logger.info("Subscrito ao canal de %s", identity.id)
            self.store.update(subscription_status="live")
        elif status in FAILED_STATES:
            self._failures += 1
            error = SubscriptionError(f"Canal de {identity.id}: {status} {err or ''}".strip(), status)
            logger.warning("%s", error)
            if self._loop is not None:
                self._loop.call_soon_threadsafe(self._restart_subscription, identity)

    def _restart_subscription(self, identity: Identity):
        if identity != self.identity:
            return
        if self._subscribe_task is not None and not self._subscribe_task.done():
            return
        self._subscribe_task = self._loop.create_task(self._resubscribe(identity))

    async def _resubscribe(self, identity: Identity):
        await self._teardown_subscription()
        await self._keep_subscribed(identity, retry=True)

    async def _teardown_subscription(self):
        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            await subscription.unsubscribe()

    async def _cancel_tasks(self):
        tasks = [t for t in (self._subscribe_task, self._debounce_task) if t is not None and not t.done()]
        self._subscribe_task = None
        self._debounce_task = None
        for task in tasks:
            task.cancel()
        # Espera a limpeza das tarefas (ex.: canal meio aberto ser removido)
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def wait_for_pending(self):
        """Espera canal e refresh agendado terminarem (usado nos testes)."""
        tasks = [t for t in (self._subscribe_task, self._debounce_task) if t is not None]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
