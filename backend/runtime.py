# backend/runtime.py
import asyncio
import logging
import threading

logger = logging.getLogger(__name__)


class LoopThread:
    """
    Event loop asyncio numa thread própria. O script do Streamlit é síncrono
    e roda de novo a cada interação; o canal realtime precisa de um loop que
    continue vivo entre execuções.
    """

    def __init__(self, name: str = "painel-loop"):
        self.loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)
        self._thread.start()

    def _run(self):
        asyncio.set_event_loop(self.loop)
        self.loop.run_forever()

    def run(self, coro, timeout: float = None):
        """Executa a corrotina no loop e espera o resultado."""
        return asyncio.run_coroutine_threadsafe(coro, self.loop).result(timeout)

    def call(self, fn, *args, timeout: float = None):
        """Executa uma função comum dentro do loop (mutações de estado)."""

        async def _call():
            return fn(*args)

        return self.run(_call(), timeout=timeout)

    @property
    def running(self) -> bool:
        return self._thread.is_alive()

    def shutdown(self, cleanup=None):
        """
        Agenda `cleanup` (corrotina) e a parada do loop, sem bloquear quem
        chamou. Pode ser chamado de qualquer thread, inclusive a do loop.
        """
        if not self.running:
            if cleanup is not None:
                cleanup.close()
            return

        async def _finish():
            try:
                if cleanup is not None:
                    await cleanup
            except Exception:
                logger.exception("Erro na limpeza do loop %s", self._thread.name)
            finally:
                self.loop.stop()

        asyncio.run_coroutine_threadsafe(_finish(), self.loop)

    def join(self, timeout: float = None):
        self._thread.join(timeout)

    def stop(self, timeout: float = 5):
        if not self.running:
            return
        self.loop.call_soon_threadsafe(self.loop.stop)
        self._thread.join(timeout)
        logger.debug("Loop %s parado", self._thread.name)
