# backend/painel.py
import asyncio
import logging
import weakref
from typing import Optional

from .config import Settings
from .runtime import LoopThread
from .selection import SelectionEngine
from .services import AppointmentQueryService
from .session import Identity, SessionProvider
from .store import AppointmentStore
from .supabase_client import create_client
from .synchronizer import AppointmentSynchronizer

logger = logging.getLogger(__name__)


class Painel:
    """Liga sessão, consultas, store, sincronizador e seleção de um navegador."""

    def __init__(self, settings: Settings, sessions: SessionProvider, service: AppointmentQueryService):
        self.settings = settings
        self.sessions = sessions
        self.service = service
        self.store = AppointmentStore()
        self.synchronizer = AppointmentSynchronizer(
            service,
            self.store,
            tz_name=settings.timezone,
            debounce_seconds=settings.refresh_debounce_seconds,
            subscribe_max_attempts=settings.subscribe_max_attempts,
            retry_base_seconds=settings.subscribe_retry_base_seconds,
            retry_max_seconds=settings.subscribe_retry_max_seconds,
        )
        self.selection = SelectionEngine(service, self.store, self.synchronizer)
        self._auth_subscription = None
        self._realtime_status = None
        self._unwatch = self.store.subscribe(self._log_realtime_status)

    @classmethod
    async def create(cls, settings: Settings) -> "Painel":
        client = await create_client(settings)
        return cls(settings, SessionProvider(client), AppointmentQueryService(client, settings.table))

    def _log_realtime_status(self, state):
        if state.subscription_status != self._realtime_status:
            logger.info("Tempo real: %s -> %s", self._realtime_status, state.subscription_status)
            self._realtime_status = state.subscription_status

    @property
    def identity(self) -> Optional[Identity]:
        return self.synchronizer.identity

    async def start(self):
        """Sessão já existente + escuta de login/logout vindos do Auth."""
        loop = asyncio.get_running_loop()

        def _changed(identity: Optional[Identity]):
            loop.call_soon_threadsafe(lambda: loop.create_task(self.synchronizer.bind(identity)))

        self._auth_subscription = self.sessions.on_session_change(_changed)
        await self.synchronizer.bind(await self.sessions.get_current_session())

    async def sign_in(self, email: str, password: str) -> Identity:
        identity = await self.sessions.sign_in(email, password)
        await self.synchronizer.bind(identity)
        return identity

    async def sign_out(self) -> bool:
        ok = await self.sessions.sign_out()
        await self.synchronizer.bind(None)
        return ok

    async def close(self):
        if self._auth_subscription is not None:
            self._auth_subscription.unsubscribe()
            self._auth_subscription = None
        await self.synchronizer.close()
        self._unwatch()
        logger.info("Painel encerrado")


def _shutdown(runtime: LoopThread, painel: Painel):
    runtime.shutdown(painel.close())


class PainelSession:
    """
    Painel + loop de uma sessão do navegador, guardado em st.session_state.
    Quando o Streamlit descarta a sessão o objeto é coletado e o finalizador
    fecha o painel (canal, listener de auth) e para o loop.
    """

    def __init__(self, runtime: LoopThread, painel: Painel):
        self.runtime = runtime
        self.painel = painel
        try:
            runtime.run(painel.start())
        except Exception:
            runtime.stop()
            raise
        # O finalizador não pode guardar referência a self
        self._finalizer = weakref.finalize(self, _shutdown, runtime, painel)

    @classmethod
    def open(cls, settings: Settings) -> "PainelSession":
        runtime = LoopThread()
        try:
            painel = runtime.run(Painel.create(settings))
        except Exception:
            runtime.stop()
            raise
        return cls(runtime, painel)

    def close(self):
        self._finalizer()
