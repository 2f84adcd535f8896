"""
PetServices Backend — Authentication Service
=============================================

What:  Password hashing, account registration, login, and session tokens.
How:   passlib's bcrypt CryptContext hashes passwords (in the threadpool,
       bcrypt is CPU bound); python-jose signs HS256 tokens that carry the
       user id, email, name and role and expire TOKEN_TTL_HOURS after issue.
Who:   /register, /login, /me routes; the ProtectedRoute auth gate;
       scripts/promote_admin.py.

Token lifecycle:
    login → issue_token() → client stores it → Authorization: Bearer <token>
    → verify_token() on every protected request. Nothing is persisted;
    a token is valid while its signature checks out and `exp` is ahead.

Failure mapping:
    no token                      → UnauthorizedError (401)
    bad signature / expired token → ForbiddenError (403)
    unknown email / bad password  → UnauthorizedError, same message for both
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from petservices.exceptions import (
    ConfigurationError,
    ConflictError,
    DatabaseError,
    ForbiddenError,
    NotFoundError,
    PetServicesError,
    UnauthorizedError,
    ValidationError,
)
from petservices.models.user import ROLE_USER, ROLES, User
from petservices.schemas.auth import TokenClaims

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Incorrect email or password"
INVALID_TOKEN = "Invalid or expired token"
EMAIL_TAKEN = "An account with this email already exists"


class AuthService:
    """
    Stateless apart from its configuration; one instance per application.
    """

    def __init__(
        self,
        jwt_secret: str,
        jwt_algorithm: str = "HS256",
        token_ttl_hours: int = 24,
        bcrypt_rounds: int = 12,
    ):
        self.jwt_secret = jwt_secret
        self.jwt_algorithm = jwt_algorithm
        self.token_ttl = timedelta(hours=token_ttl_hours)
        self.pwd_context = CryptContext(
            schemes=["bcrypt"],
            deprecated="auto",
            bcrypt__rounds=bcrypt_rounds,
        )

    @classmethod
    def from_settings(cls, settings) -> "AuthService":
        return cls(
            jwt_secret=settings.jwt_secret,
            jwt_algorithm=settings.jwt_algorithm,
            token_ttl_hours=settings.token_ttl_hours,
            bcrypt_rounds=settings.bcrypt_rounds,
        )

    @staticmethod
    def normalize_email(email: str) -> str:
        return email.strip().lower()

    def _require_secret(self) -> None:
        if not self.jwt_secret:
            raise ConfigurationError("JWT_SECRET")

    # ── Passwords ─────────────────────────────────────────────────────────

    async def hash_password(self, password: str) -> str:
        return await run_in_threadpool(self.pwd_context.hash, password)

    async def verify_password(self, password: str, password_hash: str) -> bool:
        return await run_in_threadpool(self.pwd_context.verify, password, password_hash)

    # ── Tokens ────────────────────────────────────────────────────────────

    def issue_token(self, user: User, now: Optional[datetime] = None) -> str:
        """Sign a session token for `user`, valid for the configured TTL."""
        self._require_secret()
        issued_at = now or datetime.now(timezone.utc)
        expires_at = issued_at + self.token_ttl
        payload = {
            # jose requires a string subject
            "sub": str(user.id),
            "user_id": user.id,
            "email": user.email,
            "name": user.name,
            "role": user.role,
            "iat": int(issued_at.timestamp()),
            "exp": int(expires_at.timestamp()),
        }
        return jwt.encode(payload, self.jwt_secret, algorithm=self.jwt_algorithm)

    def verify_token(self, token: Optional[str]) -> TokenClaims:
        """
        Decode and validate a session token.

        Raises:
            UnauthorizedError: no token supplied.
            ForbiddenError: signature invalid, token expired, or claims malformed.
            ConfigurationError: JWT_SECRET is not set.
        """
        if not token:
            raise UnauthorizedError()
        self._require_secret()

        try:
            payload = jwt.decode(token, self.jwt_secret, algorithms=[self.jwt_algorithm])
        except JWTError as e:
            logger.info("Token rejected: %s", str(e))
            raise ForbiddenError(message=INVALID_TOKEN)

        try:
            return TokenClaims(
                user_id=payload["user_id"],
                email=payload["email"],
                name=payload.get("name"),
                role=payload["role"],
                issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
                expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
            )
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Token with malformed claims rejected: %s", str(e))
            raise ForbiddenError(message=INVALID_TOKEN)

    # ── Accounts ──────────────────────────────────────────────────────────

    async def register(
        self,
        db: AsyncSession,
        name: str,
        email: str,
        password: str,
    ) -> User:
        """
        Create a user account with role 'user'.

        Raises:
            ConflictError: the email (case-insensitive) is already registered,
                including when a concurrent registration wins the race.
        """
        email = self.normalize_email(email)
        try:
            result = await db.execute(
                select(User.id).where(func.lower(User.email) == email)
            )
            if result.scalar_one_or_none() is not None:
                raise ConflictError(message=EMAIL_TAKEN)

            password_hash = await self.hash_password(password)
            user = User(
                name=name.strip(),
                email=email,
                password_hash=password_hash,
                role=ROLE_USER,
            )
            db.add(user)
            try:
                await db.flush()
            except IntegrityError:
                await db.rollback()
                raise ConflictError(message=EMAIL_TAKEN)

            logger.info("User registered: id=%s", user.id)
            return user

        except PetServicesError:
            raise
        except SQLAlchemyError as e:
            logger.error("Database error during registration: %s", str(e))
            raise DatabaseError(context={"operation": "register"})

    async def login(
        self,
        db: AsyncSession,
        email: str,
        password: str,
    ) -> Tuple[User, str]:
        """
        Check credentials and issue a token.

        Raises:
            UnauthorizedError: unknown email or wrong password.
        """
        self._require_secret()
        email = self.normalize_email(email)
        try:
            result = await db.execute(
                select(User).where(func.lower(User.email) == email)
            )
            user = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error("Database error during login: %s", str(e))
            raise DatabaseError(context={"operation": "login"})

        if user is None:
            # Same cost as a real check, so response time does not reveal the miss
            await run_in_threadpool(self.pwd_context.dummy_verify)
            raise UnauthorizedError(message=INVALID_CREDENTIALS)

        if not await self.verify_password(password, user.password_hash):
            raise UnauthorizedError(message=INVALID_CREDENTIALS)

        logger.info("User logged in: id=%s", user.id)
        return user, self.issue_token(user)

    async def set_role(self, db: AsyncSession, user_id: int, role: str) -> User:
        """Change a user's role. Operator tooling only; no HTTP route calls this."""
        if role not in ROLES:
            raise ValidationError(
                message=f"Unknown role '{role}'. Must be one of: {', '.join(ROLES)}",
                field="role",
            )
        user = await db.get(User, user_id)
        if user is None:
            raise NotFoundError(resource="user", resource_id=user_id)

        user.role = role
        await db.flush()
        logger.info("User %s role set to %s", user_id, role)
        return user
