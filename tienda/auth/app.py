import logging
from typing import Literal, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..config import Settings, get_settings
from ..db import get_db
from ..errors import Conflict, InvalidInput, NotFound, Unauthenticated
from ..pagination import check_page, paginate
from ..security import (
    ROLE_ADMIN,
    ROLE_CUSTOMER,
    Principal,
    create_access_token,
    hash_password,
    require_admin,
    require_authenticated,
    verify_password,
)
from .models import User

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])
users_router = APIRouter(prefix="/users", tags=["Users"])


# --- Schemas ---
class Credentials(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6)


class LoginIn(BaseModel):
    email: EmailStr
    password: str


class ProfileUpdate(BaseModel):
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(None, min_length=6)


class RoleUpdate(BaseModel):
    role: Literal["customer", "admin"]


def user_to_dict(u: User):
    return {
        "id": u.id,
        "email": u.email,
        "role": u.role,
        "created_at": u.created_at.isoformat() if u.created_at else None,
    }


def token_response(u: User, settings: Settings):
    token = create_access_token(u.id, u.role, settings)
    return {"user": user_to_dict(u), "access_token": token, "token_type": "bearer"}


def _normalize_email(email: str) -> str:
    return email.strip().lower()


def ensure_admin(db: Session, settings: Settings) -> Optional[User]:
    """Create the bootstrap admin from ADMIN_EMAIL/ADMIN_PASSWORD if missing."""
    if not (settings.admin_email and settings.admin_password):
        return None
    email = _normalize_email(settings.admin_email)
    user = db.query(User).filter(User.email == email).first()
    if user is None:
        user = User(
            email=email,
            password_hash=hash_password(settings.admin_password, settings),
            role=ROLE_ADMIN,
        )
        db.add(user)
        db.commit(); db.refresh(user)
        logger.info("Bootstrap admin %s created", email)
    elif user.role != ROLE_ADMIN:
        user.role = ROLE_ADMIN
        db.commit()
        logger.info("User %s promoted to admin at startup", email)
    return user


# --- Endpoints ---

# Endpoint para registrar nuevos usuarios; siempre como customer
@router.post("/register", status_code=201)
def register(
    payload: Credentials,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    email = _normalize_email(payload.email)
    if db.query(User).filter(User.email == email).first():
        raise Conflict("Email already registered")
    new_user = User(
        email=email,
        password_hash=hash_password(payload.password, settings),
        role=ROLE_CUSTOMER,
    )
    db.add(new_user)
    try:
        db.commit()
    except IntegrityError:
        # otro registro con el mismo email ganó la carrera
        db.rollback()
        raise Conflict("Email already registered")
    db.refresh(new_user)
    logger.info("User %s registered", new_user.id)
    return token_response(new_user, settings)


@router.post("/login")
def login(
    payload: LoginIn,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    user = db.query(User).filter(User.email == _normalize_email(payload.email)).first()
    # Mismo mensaje para email inexistente y clave incorrecta
    if not user or not verify_password(payload.password, user.password_hash, settings):
        raise Unauthenticated("Invalid credentials")
    return token_response(user, settings)


@router.post("/verify")
def verify(
    principal: Principal = Depends(require_authenticated),
    db: Session = Depends(get_db),
):
    # Aca si se consulta la BD: el usuario puede haber cambiado desde que se emitió el token
    user = db.get(User, principal.user_id)
    if user is None:
        raise Unauthenticated("User not found")
    return {
        "user": user_to_dict(user),
        "claims": {"user_id": principal.user_id, "role": principal.role},
    }


@users_router.get("/me")
def read_me(principal: Principal = Depends(require_authenticated), db: Session = Depends(get_db)):
    user = db.get(User, principal.user_id)
    if user is None:
        raise NotFound("User not found")
    return user_to_dict(user)


@users_router.put("/me")
def update_me(
    payload: ProfileUpdate,
    principal: Principal = Depends(require_authenticated),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    user = db.get(User, principal.user_id)
    if user is None:
        raise NotFound("User not found")
    if payload.email is None and payload.password is None:
        raise InvalidInput("Nothing to update")
    if payload.email is not None:
        user.email = _normalize_email(payload.email)
    if payload.password is not None:
        user.password_hash = hash_password(payload.password, settings)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict("Email already registered")
    db.refresh(user)
    return user_to_dict(user)


@users_router.get("")
def list_users(
    page: int = 1,
    limit: int = 10,
    admin: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    page, limit = check_page(page, limit, settings.max_page_size)
    result = paginate(db.query(User), [User.created_at.desc(), User.id.desc()], page, limit)
    return result.to_dict(user_to_dict)


@users_router.put("/{user_id}/role")
def update_role(
    user_id: int,
    payload: RoleUpdate,
    admin: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    user = db.get(User, user_id)
    if user is None:
        raise NotFound("User not found")
    user.role = payload.role
    db.commit(); db.refresh(user)
    # los tokens ya emitidos conservan el rol anterior hasta que expiren
    logger.info("Admin %s set role of user %s to %s", admin.user_id, user_id, payload.role)
    return user_to_dict(user)
