# backend/errors.py


class PainelError(Exception):
    """Erro base do painel de agendamentos."""


class ConfigError(PainelError):
    pass


class AuthError(PainelError):
    """Falha de login, sessão ou logout."""


class FetchError(PainelError):
    """Falha ao ler os agendamentos."""


class MutationError(PainelError):
    """Falha ao cancelar um ou mais agendamentos."""


class SubscriptionError(PainelError):
    """Canal realtime não conectou ou expirou."""

    def __init__(self, message: str, status: str = None):
        super().__init__(message)
        self.status = status
