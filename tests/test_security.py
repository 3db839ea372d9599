from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from tienda.errors import Forbidden, Unauthenticated
from tienda.security import (
    Principal,
    create_access_token,
    hash_password,
    require_admin,
    resolve_principal,
    verify_password,
)


def test_resolve_principal_from_valid_token(settings):
    token = create_access_token(7, "customer", settings)
    principal = resolve_principal(f"Bearer {token}", settings)
    assert principal == Principal(user_id=7, role="customer")
    assert not principal.is_admin


def test_scheme_is_case_insensitive(settings):
    token = create_access_token(1, "admin", settings)
    assert resolve_principal(f"bearer {token}", settings).is_admin


@pytest.mark.parametrize("header", [None, "", "Bearer", "Bearer   ", "Basic dXNlcjpwYXNz", "Token abc"])
def test_missing_or_wrong_scheme(settings, header):
    with pytest.raises(Unauthenticated):
        resolve_principal(header, settings)


def test_expired_token(settings):
    issued = datetime.now(timezone.utc) - timedelta(days=30)
    token = create_access_token(1, "customer", settings, now=issued)
    with pytest.raises(Unauthenticated) as exc:
        resolve_principal(f"Bearer {token}", settings)
    assert exc.value.detail == "Token expired"


def test_expiry_is_checked_against_given_time(settings):
    now = datetime(2030, 1, 1, tzinfo=timezone.utc)
    token = create_access_token(1, "customer", settings, now=now)
    assert resolve_principal(f"Bearer {token}", settings, now=now + timedelta(minutes=1)).user_id == 1
    later = now + timedelta(minutes=settings.access_token_expire_minutes + 1)
    with pytest.raises(Unauthenticated):
        resolve_principal(f"Bearer {token}", settings, now=later)


def test_token_signed_with_other_secret(settings):
    exp = int((datetime.now(timezone.utc) + timedelta(hours=1)).timestamp())
    token = jwt.encode({"sub": "1", "role": "admin", "exp": exp}, "not-the-secret", algorithm="HS256")
    with pytest.raises(Unauthenticated):
        resolve_principal(f"Bearer {token}", settings)


@pytest.mark.parametrize(
    "claims",
    [
        {"sub": "1", "role": "admin"},                       # sin exp
        {"role": "admin", "exp": 4102444800},                 # sin sub
        {"sub": "abc", "role": "customer", "exp": 4102444800},
        {"sub": "1", "role": "superuser", "exp": 4102444800},
    ],
)
def test_incomplete_claims_are_rejected(settings, claims):
    token = jwt.encode(claims, settings.secret_key, algorithm=settings.algorithm)
    with pytest.raises(Unauthenticated):
        resolve_principal(f"Bearer {token}", settings)


def test_garbage_token(settings):
    with pytest.raises(Unauthenticated):
        resolve_principal("Bearer not.a.jwt", settings)


def test_require_admin_rejects_customer():
    with pytest.raises(Forbidden):
        require_admin(Principal(user_id=3, role="customer"))
    assert require_admin(Principal(user_id=1, role="admin")).user_id == 1


def test_password_hashing(settings):
    digest = hash_password("secret123", settings)
    assert digest != "secret123"
    assert verify_password("secret123", digest, settings)
    assert not verify_password("wrong", digest, settings)
    assert not verify_password("secret123", "not-a-hash", settings)
