import os
from datetime import datetime, timedelta, timezone

from jose import jwt, JWTError
from passlib.context import CryptContext
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .errors import AuthenticationError, ConflictError, DependencyError, NotFoundError, ValidationError
from .models import Identity

JWT_SECRET = os.getenv("JWT_SECRET", "please_change_me")
JWT_EXPIRES_SECONDS = int(os.getenv("JWT_EXPIRES_SECONDS", "36000"))
ALGORITHM = "HS256"

pwd_ctx = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(pw: str) -> str:
    return pwd_ctx.hash(pw)


def verify_password(pw: str, hashed: str) -> bool:
    return pwd_ctx.verify(pw, hashed)


def create_token(sub: str, version: int = 0):
    now = datetime.now(timezone.utc)
    payload = {
        "sub": sub,
        "ver": version,
        "iat": now,
        "exp": now + timedelta(seconds=JWT_EXPIRES_SECONDS),
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=ALGORITHM)


def decode_token(token: str):
    try:
        return jwt.decode(token, JWT_SECRET, algorithms=[ALGORITHM])
    except JWTError:
        return None


class IdentityProvider:
    """Issues and verifies bearer tokens against the identities table."""

    def __init__(self, db: Session):
        self.db = db

    def _commit(self) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise DependencyError(f"Identity store failure: {exc}") from exc

    def get_by_email(self, email: str) -> Identity | None:
        return self.db.query(Identity).filter_by(email=email.lower()).first()

    def create_identity(self, email: str, secret: str) -> str:
        if self.get_by_email(email):
            raise ConflictError("Email already exists")
        identity = Identity(email=email.lower(), hashed_password=hash_password(secret))
        self.db.add(identity)
        self._commit()
        return identity.id

    def authenticate(self, email: str, secret: str) -> Identity:
        identity = self.get_by_email(email)
        if not identity or not verify_password(secret, identity.hashed_password):
            raise AuthenticationError("Invalid credentials")
        return identity

    def issue_token(self, identity: Identity) -> str:
        return create_token(identity.id, identity.token_version)

    def verify(self, token: str) -> str:
        payload = decode_token(token)
        if not payload or "sub" not in payload:
            raise AuthenticationError("Invalid token")
        identity = self.db.get(Identity, payload["sub"])
        if not identity or payload.get("ver", 0) != identity.token_version:
            raise AuthenticationError("Invalid token")
        return identity.id

    def revoke_tokens(self, subject_id: str) -> None:
        identity = self.db.get(Identity, subject_id)
        if not identity:
            raise NotFoundError("User not found")
        identity.token_version += 1
        self._commit()

    def change_secret(self, subject_id: str, current: str, new: str) -> None:
        identity = self.db.get(Identity, subject_id)
        if not identity:
            raise NotFoundError("User not found")
        if not verify_password(current, identity.hashed_password):
            raise ValidationError("Current password is incorrect")
        identity.hashed_password = hash_password(new)
        self._commit()

    def delete_identity(self, subject_id: str) -> None:
        identity = self.db.get(Identity, subject_id)
        if identity:
            self.db.delete(identity)
            self._commit()
