# backend/config.py
import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from dotenv import load_dotenv, find_dotenv

from .errors import ConfigError

DEFAULT_TABLE = "scheduled_messages"
DEFAULT_TIMEZONE = "America/Sao_Paulo"


@dataclass(frozen=True)
class Settings:
    supabase_url: str
    supabase_anon_key: str
    table: str = DEFAULT_TABLE
    timezone: str = DEFAULT_TIMEZONE
    refresh_debounce_seconds: float = 0.3
    subscribe_max_attempts: int = 5
    subscribe_retry_base_seconds: float = 1.0
    subscribe_retry_max_seconds: float = 30.0
    ui_poll_seconds: float = 2.0
    log_level: str = "INFO"


def _number(env: Mapping[str, str], name: str, default, cast=float):
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw)
    except ValueError as e:
        raise ConfigError(f"{name} inválido: {raw!r}") from e


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Lê a configuração do ambiente (e do .env, se existir).
    Passar `env` evita tocar em os.environ (útil nos testes).
    """
    if env is None:
        load_dotenv(find_dotenv())
        env = os.environ

    # Aceita também os nomes do front React antigo
    url = env.get("SUPABASE_URL") or env.get("REACT_APP_SUPABASE_URL")
    key = env.get("SUPABASE_ANON_KEY") or env.get("REACT_APP_SUPABASE_ANON_KEY")
    if not url or not key:
        raise ConfigError("Defina SUPABASE_URL e SUPABASE_ANON_KEY no ambiente ou no .env")

    return Settings(
        supabase_url=url,
        supabase_anon_key=key,
        table=env.get("APPOINTMENTS_TABLE") or DEFAULT_TABLE,
        timezone=env.get("TIMEZONE") or DEFAULT_TIMEZONE,
        refresh_debounce_seconds=_number(env, "REFRESH_DEBOUNCE_SECONDS", 0.3),
        subscribe_max_attempts=_number(env, "SUBSCRIBE_MAX_ATTEMPTS", 5, int),
        subscribe_retry_base_seconds=_number(env, "SUBSCRIBE_RETRY_BASE_SECONDS", 1.0),
        subscribe_retry_max_seconds=_number(env, "SUBSCRIBE_RETRY_MAX_SECONDS", 30.0),
        ui_poll_seconds=_number(env, "UI_POLL_SECONDS", 2.0),
        log_level=(env.get("LOG_LEVEL") or "INFO").upper(),
    )


def configure_logging(level: str = "INFO"):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
