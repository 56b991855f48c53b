# backend/store.py
import logging
import threading
from dataclasses import dataclass, field, replace
from typing import Callable, FrozenSet, List, Optional

from models.appointment import Appointment, AppointmentId

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AppointmentState:
    appointments: List[Appointment] = field(default_factory=list)
    loading: bool = False
    error: Optional[str] = None
    selected: FrozenSet[AppointmentId] = frozenset()
    search_term: str = ""
    notice: Optional[str] = None
    subscription_status: Optional[str] = None   # live | retrying | degraded
    version: int = 0


Listener = Callable[[AppointmentState], None]


class AppointmentStore:
    """
    Estado da tela em um único lugar. Quem renderiza assina com subscribe()
    ou lê snapshot(); só o loop do núcleo escreve.
    """

    def __init__(self):
        self._state = AppointmentState()
        self._listeners: List[Listener] = []
        self._lock = threading.Lock()

    def snapshot(self) -> AppointmentState:
        with self._lock:
            return self._state

    def update(self, **changes) -> AppointmentState:
        with self._lock:
            self._state = replace(self._state, version=self._state.version + 1, **changes)
            state = self._state
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(state)
            except Exception:
                logger.exception("Listener do store falhou")
        return state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe():
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def reset(self, **changes) -> AppointmentState:
        """Estado inicial (mais `changes`), mantendo a versão crescente."""
        initial = dict(
            appointments=[],
            loading=False,
            error=None,
            selected=frozenset(),
            search_term="",
            notice=None,
            subscription_status=None,
        )
        initial.update(changes)
        return self.update(**initial)
