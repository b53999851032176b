"""
Session Context

Holds the signed-in user for one UI session. The context is an explicit
object handed to the orchestrator and the UI; there is no module-level
current user.

Transitions:
- init: the identity provider reports an identity; the matching user record
  is created or re-keyed in the users collection and kept (sanitized)
- teardown: the provider reports no identity (sign-out)
"""

from typing import Callable, Optional

import structlog

from budgetflow.models.finance import User
from budgetflow.services.identity import AuthIdentity, IdentityProviderInterface
from budgetflow.services.storage.repositories import UserRepository


logger = structlog.get_logger(__name__)


class SessionError(Exception):
    """Raised when an operation needs a signed-in user and there is none."""
    pass


class SessionContext:

    def __init__(self, provider: IdentityProviderInterface, users: UserRepository):
        self._provider = provider
        self._users = users
        self._unsubscribe: Optional[Callable[[], None]] = None
        self.user: Optional[User] = None

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    async def start(self) -> None:
        """Subscribe to the provider; the current identity is applied at once."""
        if self._unsubscribe is None:
            self._unsubscribe = await self._provider.subscribe(self.on_identity_changed)

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    async def on_identity_changed(self, identity: Optional[AuthIdentity]) -> None:
        if identity is None:
            self.teardown()
            return
        self.user = await self._users.sync_identity(identity.uid, identity.email)
        logger.info("session_started", user_id=self.user.id)

    def teardown(self) -> None:
        if self.user is not None:
            logger.info("session_ended", user_id=self.user.id)
        self.user = None

    def require_user(self) -> User:
        if self.user is None:
            raise SessionError("No user is signed in")
        return self.user
