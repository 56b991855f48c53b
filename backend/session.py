# backend/session.py
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from .errors import AuthError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    id: str
    email: Optional[str] = None


def identity_from_session(session) -> Optional[Identity]:
    """Extrai o usuário de uma sessão do Supabase Auth (ou None)."""
    user = getattr(session, "user", None) if session is not None else None
    if user is None or not getattr(user, "id", None):
        return None
    return Identity(id=str(user.id), email=getattr(user, "email", None))


class SessionProvider:
    """Login, sessão atual e logout sobre o `client.auth` do Supabase."""

    def __init__(self, client):
        self.client = client

    async def sign_in(self, email: str, password: str) -> Identity:
        try:
            resp = await self.client.auth.sign_in_with_password(
                {"email": email, "password": password}
            )
        except Exception as e:
            logger.warning("Falha no login de %s: %s", email, e)
            raise AuthError(getattr(e, "message", None) or str(e)) from e

        identity = identity_from_session(getattr(resp, "session", None))
        if identity is None:
            identity = identity_from_session(resp)
        if identity is None:
            raise AuthError("Login sem sessão válida")
        logger.info("Usuário %s autenticado", identity.id)
        return identity

    async def get_current_session(self) -> Optional[Identity]:
        try:
            session = await self.client.auth.get_session()
        except Exception as e:
            logger.warning("Não foi possível ler a sessão: %s", e)
            return None
        return identity_from_session(session)

    def on_session_change(self, callback: Callable[[Optional[Identity]], None]):
        """Registra o callback; devolve um objeto com unsubscribe()."""

        def _listener(_event, session):
            callback(identity_from_session(session))

        return self.client.auth.on_auth_state_change(_listener)

    async def sign_out(self) -> bool:
        try:
            await self.client.auth.sign_out()
        except Exception as e:
            # Logout com erro não bloqueia a UI
            logger.error("Erro ao fazer logout: %s", AuthError(str(e)))
            return False
        return True
