import logging
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Optional, Tuple

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext

from .config import Settings, get_settings
from .errors import Forbidden, Unauthenticated

logger = logging.getLogger(__name__)

ROLE_CUSTOMER = "customer"
ROLE_ADMIN = "admin"
ROLES = (ROLE_CUSTOMER, ROLE_ADMIN)

BEARER_PREFIX = "bearer"


class Principal:
    def __init__(self, user_id: int, role: str):
        self.user_id = user_id
        self.role = role

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    def __eq__(self, other):
        return (
            isinstance(other, Principal)
            and self.user_id == other.user_id
            and self.role == other.role
        )

    def __repr__(self):
        return f"Principal(user_id={self.user_id!r}, role={self.role!r})"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------- Passwords ----------------
@lru_cache()
def _password_context(schemes: Tuple[str, ...]) -> CryptContext:
    # el primer esquema es el vigente, el resto queda como "deprecated"
    return CryptContext(schemes=list(schemes), deprecated="auto")


def hash_password(password: str, settings: Settings = None) -> str:
    settings = settings or get_settings()
    return _password_context(settings.password_schemes).hash(password)


def verify_password(password: str, digest: str, settings: Settings = None) -> bool:
    settings = settings or get_settings()
    try:
        return _password_context(settings.password_schemes).verify(password, digest)
    except ValueError:
        # digest con formato desconocido
        return False


# ---------------- Tokens ----------------
def create_access_token(
    user_id: int, role: str, settings: Settings = None, now: datetime = None
) -> str:
    settings = settings or get_settings()
    now = now or _utcnow()
    expire = now + timedelta(minutes=settings.access_token_expire_minutes)
    claims = {
        "sub": str(user_id),
        "role": role,
        "iat": int(now.timestamp()),
        "exp": int(expire.timestamp()),
    }
    return jwt.encode(claims, settings.secret_key, algorithm=settings.algorithm)


def decode_token(token: str, settings: Settings, now: datetime = None) -> dict:
    """Verify signature and expiry; return the raw claims."""
    now = now or _utcnow()
    try:
        # la expiracion se valida a mano contra ``now``
        claims = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.algorithm],
            options={"verify_exp": False, "verify_iat": False},
        )
    except JWTError as e:
        logger.debug("Token rejected: %s", e)
        raise Unauthenticated("Invalid token")

    exp = claims.get("exp")
    if not isinstance(exp, (int, float)) or isinstance(exp, bool):
        raise Unauthenticated("Invalid token")
    if exp <= now.timestamp():
        raise Unauthenticated("Token expired")
    return claims


def principal_from_token(token: str, settings: Settings, now: datetime = None) -> Principal:
    # Los claims se confían tal como se emitieron: no se consulta la BD,
    # un cambio de rol aplica recién a los tokens nuevos
    claims = decode_token(token, settings, now=now)
    sub = claims.get("sub")
    role = claims.get("role")
    try:
        user_id = int(sub)
    except (TypeError, ValueError):
        raise Unauthenticated("Invalid token")
    if role not in ROLES:
        raise Unauthenticated("Invalid token")
    return Principal(user_id=user_id, role=role)


def resolve_principal(
    authorization: Optional[str], settings: Settings, now: datetime = None
) -> Principal:
    if not authorization:
        raise Unauthenticated("Not authenticated")

    scheme, _, token = authorization.strip().partition(" ")
    token = token.strip()
    if scheme.lower() != BEARER_PREFIX or not token:
        raise Unauthenticated("Invalid auth scheme")
    return principal_from_token(token, settings, now=now)


# ---------------- Gates ----------------
# auto_error=False: el 401 lo arma Unauthenticated, con WWW-Authenticate
bearer_scheme = HTTPBearer(auto_error=False)


def require_authenticated(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    settings: Settings = Depends(get_settings),
) -> Principal:
    # Aseguramos que sea "Bearer"
    if not credentials or credentials.scheme.lower() != BEARER_PREFIX:
        raise Unauthenticated("Not authenticated")
    return principal_from_token(credentials.credentials, settings)


# require_admin depende de require_authenticated: un anónimo siempre ve 401, nunca 403
def require_admin(principal: Principal = Depends(require_authenticated)) -> Principal:
    if not principal.is_admin:
        raise Forbidden("Admin only")
    return principal
