from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import structlog
from jose import JWTError, jwt
from pydantic import ValidationError

from config import ACCESS_TOKEN_EXPIRE_HOURS, ALGORITHM, SECRET_KEY, USERS_COLLECTION
from document_client import DocumentClient
from exceptions import AuthError, RemoteUnavailable
from models import User
from result import Error, Result, Success, invalid, not_found, unauthorized

logger = structlog.get_logger(__name__)

ROLES = ("trainee", "trainer")


def hash_password(password: str) -> str:
    # Convert string to bytes, generate salt, and hash
    pwd_bytes = password.encode("utf-8")
    salt = bcrypt.gensalt()
    hashed = bcrypt.hashpw(pwd_bytes, salt)
    return hashed.decode("utf-8")  # Store as string in the user document


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        return False


def create_access_token(user_id: str) -> str:
    expire = datetime.now(timezone.utc) + timedelta(hours=ACCESS_TOKEN_EXPIRE_HOURS)
    return jwt.encode({"sub": user_id, "exp": expire}, SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str) -> str:
    """Return the user id carried by ``token`` or raise ``AuthError``."""
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError as e:
        raise AuthError("Invalid token") from e
    user_id = payload.get("sub")
    if not user_id:
        raise AuthError("Invalid token")
    return user_id


@dataclass(frozen=True)
class AuthSession:
    user: User
    token: str

class AuthService:
    """Email/password accounts stored next to the user profiles.

    Stateless and shared by every caller. Signing in hands back an
    ``AuthSession``; HTTP callers carry its token, library callers keep it in a
    ``SignedInUser``.
    """

    def __init__(self, client: DocumentClient):
        self.client = client

    async def sign_up(self, name: str, email: str, password: str, role: str = "trainee") -> Result:
        if role not in ROLES:
            return invalid(f"Unknown role: {role}")
        if not password:
            return invalid("Password required")
        try:
            if await self.client.query(USERS_COLLECTION, {"email": email}):
                return invalid("Email already registered")
            user_id = self.client.new_id(USERS_COLLECTION)
            user = User(id=user_id, name=name, email=email, role=role)
            # the unique email index rejects a concurrent registration that passed the check above
            created = await self.client.create_if_absent(
                USERS_COLLECTION, user_id, {**user.model_dump(), "password_hash": hash_password(password)}
            )
        except RemoteUnavailable as e:
            return Error(e.message or "Registration failed")
        if not created:
            return invalid("Email already registered")
        logger.info("user_registered", user_id=user_id, role=role)
        return Success(AuthSession(user=user, token=create_access_token(user_id)))

    async def sign_in(self, email: str, password: str) -> Result:
        try:
            matches = await self.client.query(USERS_COLLECTION, {"email": email})
        except RemoteUnavailable as e:
            return Error(e.message or "Login failed")
        if not matches or not verify_password(password, matches[0].get("password_hash", "")):
            return unauthorized("Invalid credentials")
        try:
            user = User.model_validate(matches[0])
        except ValidationError:
            logger.warning("malformed_user_record", email=email, exc_info=True)
            return invalid("Malformed user data")
        return Success(AuthSession(user=user, token=create_access_token(user.id)))

    async def get_user(self, user_id: str) -> Result:
        try:
            doc = await self.client.get_by_id(USERS_COLLECTION, user_id)
        except RemoteUnavailable as e:
            return Error(e.message)
        if doc is None:
            return not_found("User not found")
        try:
            return Success(User.model_validate(doc))
        except ValidationError:
            return invalid("Malformed user data")


class SignedInUser:
    """One caller's sign-in state on top of a shared ``AuthService``."""

    def __init__(self, auth: AuthService):
        self.auth = auth
        self.session: Optional[AuthSession] = None

    def current_user_id(self) -> Optional[str]:
        return self.session.user.id if self.session else None

    async def sign_up(self, name: str, email: str, password: str, role: str = "trainee") -> Result:
        return self._keep(await self.auth.sign_up(name, email, password, role))

    async def sign_in(self, email: str, password: str) -> Result:
        return self._keep(await self.auth.sign_in(email, password))

    def sign_out(self) -> None:
        self.session = None

    async def get_current_user(self) -> Result:
        if self.session is None:
            return unauthorized("No user logged in")
        return await self.auth.get_user(self.session.user.id)

    def _keep(self, result: Result) -> Result:
        if result.is_success:
            self.session = result.data
        return result
