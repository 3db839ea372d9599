import hashlib
import os
from functools import lru_cache
from pathlib import Path
from typing import Optional, Tuple

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict

BASE_DIR = Path(__file__).resolve().parent

# Cargar el .env local; lo que ya esté en el entorno tiene prioridad
ENV_PATH = BASE_DIR / ".env"
load_dotenv(dotenv_path=ENV_PATH, override=False)


def _as_bool(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in ("1", "true", "yes", "on")


class Settings(BaseModel):
    """Process-wide configuration, read once at startup and never mutated."""

    model_config = ConfigDict(frozen=True)

    secret_key: str
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 7 * 24 * 60
    database_url: str = f"sqlite:///{(BASE_DIR / 'tienda.db').as_posix()}"
    password_schemes: Tuple[str, ...] = ("bcrypt",)
    max_page_size: int = 100
    order_total_policy: str = "server"      # server | client
    foreign_order_denial: str = "not_found"  # not_found | forbidden
    admin_email: Optional[str] = None
    admin_password: Optional[str] = None
    seed_catalog: bool = False
    log_level: str = "INFO"

    def fingerprint(self) -> str:
        # Diagnóstico: nunca se imprime la clave en claro
        return hashlib.sha256(self.secret_key.encode()).hexdigest()[:12]


def load_settings() -> Settings:
    secret_key = os.getenv("SECRET_KEY")
    if not secret_key:
        raise RuntimeError("SECRET_KEY no está definida en tienda/.env ni en el entorno")

    policy = os.getenv("ORDER_TOTAL_POLICY", "server").lower()
    if policy not in ("server", "client"):
        raise RuntimeError(f"ORDER_TOTAL_POLICY inválida: {policy}")
    denial = os.getenv("FOREIGN_ORDER_DENIAL", "not_found").lower()
    if denial not in ("not_found", "forbidden"):
        raise RuntimeError(f"FOREIGN_ORDER_DENIAL inválida: {denial}")

    values = {
        "secret_key": secret_key,
        "algorithm": os.getenv("ALGORITHM", "HS256"),
        "access_token_expire_minutes": int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 7 * 24 * 60)),
        "password_schemes": tuple(
            s.strip() for s in os.getenv("PASSWORD_SCHEMES", "bcrypt").split(",") if s.strip()
        ),
        "max_page_size": int(os.getenv("MAX_PAGE_SIZE", 100)),
        "order_total_policy": policy,
        "foreign_order_denial": denial,
        "admin_email": os.getenv("ADMIN_EMAIL") or None,
        "admin_password": os.getenv("ADMIN_PASSWORD") or None,
        "seed_catalog": _as_bool(os.getenv("SEED_CATALOG")),
        "log_level": os.getenv("LOG_LEVEL", "INFO").upper(),
    }
    if os.getenv("DATABASE_URL"):
        values["database_url"] = os.getenv("DATABASE_URL")
    return Settings(**values)


@lru_cache()
def get_settings() -> Settings:
    return load_settings()
