"""Password hashing, access tokens and account operations."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable

import bcrypt
import jwt

from .errors import InvalidCredentials, InvalidToken, TokenExpired
from .models.domain import User, utc_now
from .persistence.repositories import UserRepository
from .persistence.store import EntryNotFound

logger = logging.getLogger(__name__)


class PasswordHasher:
    def __init__(self, rounds: int = 12) -> None:
        self.rounds = rounds

    def hash(self, password: str) -> str:
        return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(self.rounds)).decode("utf-8")

    def verify(self, password: str, hashed: str) -> bool:
        try:
            return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
        except ValueError:
            return False


@dataclass(frozen=True, slots=True)
class TokenClaims:
    user_id: str
    email: str


@dataclass(frozen=True, slots=True)
class IssuedToken:
    access_token: str
    expires_in: int
    token_type: str = "Bearer"


class TokenService:
    def __init__(
        self,
        secret: str,
        *,
        algorithm: str = "HS256",
        ttl_seconds: int = 86400,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.secret = secret
        self.algorithm = algorithm
        self.ttl_seconds = ttl_seconds
        self.clock = clock

    def issue(self, user: User) -> IssuedToken:
        issued_at = self.clock()
        payload = {
            "sub": user.user_id,
            "email": user.email,
            "iat": int(issued_at.timestamp()),
            "exp": int((issued_at + timedelta(seconds=self.ttl_seconds)).timestamp()),
        }
        token = jwt.encode(payload, self.secret, algorithm=self.algorithm)
        return IssuedToken(access_token=token, expires_in=self.ttl_seconds)

    def verify(self, token: str) -> TokenClaims:
        """Decode ``token``; expiry is judged against the service clock."""
        try:
            payload = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                options={"require": ["sub", "exp"], "verify_exp": False, "verify_iat": False},
            )
        except jwt.InvalidTokenError as exc:
            raise InvalidToken() from exc
        try:
            expires_at = int(payload["exp"])
        except (TypeError, ValueError) as exc:
            raise InvalidToken() from exc
        if self.clock().timestamp() >= expires_at:
            raise TokenExpired()
        return TokenClaims(user_id=str(payload["sub"]), email=str(payload.get("email", "")))


class AuthService:
    def __init__(
        self,
        users: UserRepository,
        hasher: PasswordHasher,
        tokens: TokenService,
        *,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.users = users
        self.hasher = hasher
        self.tokens = tokens
        self.clock = clock

    def register(self, email: str, password: str, name: str) -> User:
        user = User(
            user_id=str(uuid.uuid4()),
            email=UserRepository.normalize_email(email),
            name=name.strip(),
            password_hash=self.hasher.hash(password),
            created_at=self.clock(),
        )
        self.users.add(user)
        logger.info(f"Registered user {user.user_id}")
        return user

    def login(self, email: str, password: str) -> tuple[User, IssuedToken]:
        try:
            user = self.users.get_by_email(email)
        except EntryNotFound as exc:
            raise InvalidCredentials() from exc
        if not self.hasher.verify(password, user.password_hash):
            logger.info(f"Failed login for user {user.user_id}")
            raise InvalidCredentials()
        return user, self.tokens.issue(user)
