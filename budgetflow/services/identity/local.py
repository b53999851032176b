"""
Local Identity Provider

The legacy local-credential path: accounts live in the `users` collection
of the record store and passwords are kept as bcrypt hashes on the User
record.

MIGRATION BEHAVIOUR: accounts created before passwords were stored have no
hash. The first password presented for such an account is accepted and
stored. This keeps old accounts usable, but it also means whoever signs in
first owns the account. Prefer the Firebase provider for anything shared.
"""

import re
from typing import Optional

import bcrypt
import structlog

from budgetflow.models.finance import User
from budgetflow.services.identity.interface import (
    AuthIdentity,
    IdentityError,
    IdentityProviderInterface,
)
from budgetflow.services.storage.repositories import UserRepository


logger = structlog.get_logger(__name__)

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
MIN_PASSWORD_LENGTH = 6
DEFAULT_ROUNDS = 12

# bcrypt only looks at the first 72 bytes
MAX_PASSWORD_BYTES = 72


def _password_bytes(password: str) -> bytes:
    return password.encode("utf-8")[:MAX_PASSWORD_BYTES]


def hash_password(password: str, rounds: int = DEFAULT_ROUNDS) -> str:
    password_hash = bcrypt.hashpw(_password_bytes(password), bcrypt.gensalt(rounds=rounds))
    return password_hash.decode("utf-8")


def verify_password(password: str, encoded: str) -> bool:
    try:
        return bcrypt.checkpw(_password_bytes(password), encoded.encode("utf-8"))
    except ValueError:
        # Not a bcrypt hash
        return False


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


class LocalIdentityProvider(IdentityProviderInterface):
    """Identity provider over the local users collection."""

    def __init__(self, users: UserRepository, rounds: int = DEFAULT_ROUNDS):
        super().__init__()
        self._users = users
        self._rounds = rounds

    def _check_email(self, email: str) -> str:
        email = normalize_email(email)
        if not EMAIL_PATTERN.match(email):
            raise IdentityError("auth/invalid-email", "The email address is badly formatted.")
        return email

    def _check_new_password(self, password: str) -> None:
        if len(password or "") < MIN_PASSWORD_LENGTH:
            raise IdentityError(
                "auth/weak-password",
                f"Password should be at least {MIN_PASSWORD_LENGTH} characters",
            )

    async def authenticate(self, email: str, password: str) -> AuthIdentity:
        email = self._check_email(email)
        user = await self._users.find_by_email(email)
        if user is None:
            raise IdentityError("auth/user-not-found", "No account exists for this email.")

        if user.password_hash is None:
            logger.warning("legacy_account_password_adopted", user_id=user.id)
            user.password_hash = hash_password(password, self._rounds)
            await self._users.save_user(user)
        elif not verify_password(password, user.password_hash):
            raise IdentityError("auth/wrong-password", "The password is invalid.")

        identity = AuthIdentity(uid=user.id, email=user.email)
        await self._set_identity(identity)
        return identity

    async def register(self, email: str, password: str) -> AuthIdentity:
        email = self._check_email(email)
        self._check_new_password(password)
        if await self._users.find_by_email(email) is not None:
            raise IdentityError(
                "auth/email-already-in-use",
                "The email address is already in use by another account.",
            )

        user = User(email=email, password_hash=hash_password(password, self._rounds))
        await self._users.save_user(user)

        identity = AuthIdentity(uid=user.id, email=user.email)
        await self._set_identity(identity)
        return identity

    async def change_credential(self, current_password: str, new_password: str) -> None:
        identity = self._current
        user: Optional[User] = None
        if identity is not None:
            user = await self._users.find_by_id(identity.uid)
        if user is None:
            raise IdentityError("auth/no-current-user", "No user is signed in")

        if user.password_hash is not None and not verify_password(
            current_password, user.password_hash
        ):
            raise IdentityError("auth/wrong-password", "The password is invalid.")
        self._check_new_password(new_password)

        user.password_hash = hash_password(new_password, self._rounds)
        await self._users.save_user(user)
