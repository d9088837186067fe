import pytest
from jose import JWTError, jwt

from coursetrack.config import settings
from coursetrack.domain.errors import InvalidCredentials, ValidationFailed
from coursetrack.infrastructure.identity import LocalIdentityProvider
from coursetrack.infrastructure.models import UserORM
from coursetrack.infrastructure.security import PasswordHasher, create_access_token, decode_token


@pytest.fixture
def provider(db):
    return LocalIdentityProvider(db)


def test_password_hasher():
    hasher = PasswordHasher()
    hashed = hasher.hash("password123")
    assert hashed != "password123"
    assert hasher.verify("password123", hashed)
    assert not hasher.verify("wrongpassword", hashed)


def test_access_token_claims():
    token = create_access_token(sub="u1", email="u1@example.com")
    claims = decode_token(token)
    assert claims["sub"] == "u1"
    assert claims["email"] == "u1@example.com"
    assert claims["jti"]


def test_token_without_subject_is_rejected():
    token = jwt.encode({"email": "x@example.com"}, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)
    with pytest.raises(JWTError):
        decode_token(token)


def test_sign_up_and_sign_in(provider):
    user = provider.sign_up("student@example.com", "password123")

    principal, token = provider.sign_in("student@example.com", "password123")

    assert principal.id == user.id
    assert provider.resolve(token) == principal


def test_sign_up_duplicate(provider):
    provider.sign_up("student@example.com", "password123")
    with pytest.raises(ValidationFailed):
        provider.sign_up("student@example.com", "password123")


def test_sign_up_validates_authoritatively(provider):
    with pytest.raises(ValidationFailed):
        provider.sign_up("student@example.com", "12345")
    with pytest.raises(ValidationFailed):
        provider.sign_up("student.example.com", "password123")


def test_sign_in_wrong_password(provider):
    provider.sign_up("student@example.com", "password123")
    with pytest.raises(InvalidCredentials):
        provider.sign_in("student@example.com", "wrongpassword")


def test_inactive_user_cannot_sign_in_or_resolve(provider, db):
    provider.sign_up("student@example.com", "password123")
    _, token = provider.sign_in("student@example.com", "password123")

    db.query(UserORM).update({"is_active": False})
    db.commit()

    with pytest.raises(InvalidCredentials):
        provider.sign_in("student@example.com", "password123")
    assert provider.resolve(token) is None


def test_sign_out_revokes_only_that_token(provider):
    provider.sign_up("student@example.com", "password123")
    _, phone = provider.sign_in("student@example.com", "password123")
    _, laptop = provider.sign_in("student@example.com", "password123")

    provider.sign_out(phone)

    assert provider.resolve(phone) is None
    assert provider.resolve(laptop) is not None


def test_garbage_token(provider):
    assert provider.resolve("not-a-jwt") is None
    provider.sign_out("not-a-jwt")
