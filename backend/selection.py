# backend/selection.py
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

from models.appointment import Appointment, AppointmentId
from .errors import MutationError
from .filters import filter_by_phone, prune_selection, selectable_ids
from .store import AppointmentStore
from .synchronizer import AppointmentSynchronizer

logger = logging.getLogger(__name__)

Confirm = Callable[[str], bool]

EMPTY_SELECTION_NOTICE = "Nenhum agendamento selecionado para cancelar."
CONFIRM_ONE = "Tem certeza que deseja cancelar este agendamento?"


def confirm_selected_message(count: int) -> str:
    return f"Tem certeza que deseja cancelar {count} agendamento(s) selecionado(s)?"


@dataclass(frozen=True)
class CancelOutcome:
    ok: bool
    count: int = 0
    message: Optional[str] = None


class SelectionEngine:
    """
    Seleção de linhas visíveis e cancelamento (um ou em lote).
    Cancelados nunca entram na seleção; a seleção nunca guarda id escondido
    pela busca. Nada muda localmente antes da resposta do servidor.
    """

    def __init__(self, service, store: AppointmentStore, synchronizer: AppointmentSynchronizer):
        self.service = service
        self.store = store
        self.synchronizer = synchronizer

    def visible(self) -> List[Appointment]:
        state = self.store.snapshot()
        return filter_by_phone(state.appointments, state.search_term)

    def set_search_term(self, term: str):
        state = self.store.snapshot()
        term = term or ""
        if term == state.search_term:
            return
        self.store.update(
            search_term=term,
            selected=prune_selection(state.selected, state.appointments, term),
        )

    def toggle_selection(self, appointment_id: AppointmentId):
        state = self.store.snapshot()
        if appointment_id in state.selected:
            self.store.update(selected=state.selected - {appointment_id})
            return
        if appointment_id not in selectable_ids(self.visible()):
            return
        self.store.update(selected=state.selected | {appointment_id})

    def select_all_visible(self, select: bool):
        if select:
            self.store.update(selected=frozenset(selectable_ids(self.visible())))
        else:
            self.store.update(selected=frozenset())

    def all_visible_selected(self) -> bool:
        allowed = selectable_ids(self.visible())
        return bool(allowed) and allowed == set(self.store.snapshot().selected)

    async def cancel_one(self, appointment_id: AppointmentId, confirm: Confirm) -> CancelOutcome:
        identity = self.synchronizer.identity
        if identity is None:
            return CancelOutcome(ok=False)
        if not confirm(CONFIRM_ONE):
            return CancelOutcome(ok=False)

        try:
            await self.service.cancel(identity.id, [appointment_id])
        except MutationError as e:
            logger.error("Erro ao cancelar agendamento %s: %s", appointment_id, e)
            message = f"Erro ao cancelar agendamento: {e}"
            return CancelOutcome(ok=False, message=message)

        message = "Agendamento cancelado com sucesso!"
        if identity != self.synchronizer.identity:
            logger.info("Usuário mudou durante o cancelamento de %s; estado não alterado", appointment_id)
            return CancelOutcome(ok=True, count=1, message=message)

        await self.synchronizer.refresh()
        return CancelOutcome(ok=True, count=1, message=message)

    async def cancel_selected(self, confirm: Confirm) -> CancelOutcome:
        identity = self.synchronizer.identity
        selected = sorted(self.store.snapshot().selected, key=str)
        if not selected:
            # Aviso só no retorno: o store não muda
            return CancelOutcome(ok=False, message=EMPTY_SELECTION_NOTICE)
        if identity is None:
            return CancelOutcome(ok=False)

        count = len(selected)
        if not confirm(confirm_selected_message(count)):
            return CancelOutcome(ok=False)

        try:
            await self.service.cancel(identity.id, selected)
        except MutationError as e:
            logger.error("Erro ao cancelar %d agendamento(s): %s", count, e)
            message = f"Erro ao cancelar agendamentos selecionados: {e}"
            return CancelOutcome(ok=False, message=message)

        message = f"{count} agendamento(s) cancelado(s) com sucesso!"
        if identity != self.synchronizer.identity:
            logger.info("Usuário mudou durante o cancelamento em lote; estado não alterado")
            return CancelOutcome(ok=True, count=count, message=message)

        self.store.update(selected=frozenset())
        await self.synchronizer.refresh()
        return CancelOutcome(ok=True, count=count, message=message)
