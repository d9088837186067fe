from email_validator import EmailNotValidError, validate_email

from ...domain.entities import User
from ...domain.errors import ValidationFailed

MIN_PASSWORD_LENGTH = 6


class IUserRepository:
    def get_by_email(self, email: str) -> User | None: ...
    def create(self, email: str, password_hash: str) -> User: ...


class IPasswordHasher:
    def hash(self, plain: str) -> str: ...


def check_credentials(email: str, password: str) -> str:
    """Returns the normalized email or raises ValidationFailed."""
    try:
        email = validate_email(email, check_deliverability=False).normalized
    except EmailNotValidError as e:
        raise ValidationFailed(f"Invalid email: {e}") from e
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationFailed(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    return email


class RegisterUser:
    def __init__(self, repo: IUserRepository, hasher: IPasswordHasher):
        self.repo = repo
        self.hasher = hasher

    def execute(self, email: str, password: str) -> User:
        email = check_credentials(email, password)
        if self.repo.get_by_email(email):
            raise ValidationFailed("Email already registered")
        pwd_hash = self.hasher.hash(password)
        return self.repo.create(email, pwd_hash)
