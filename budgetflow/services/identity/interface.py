"""
Identity Provider Interface

Authentication is delegated to an external identity provider. The rest of
BudgetFlow only depends on this interface:

- authenticate / register turn a credential pair into an AuthIdentity
- change_credential rotates the password after re-proving the current one
- subscribe delivers the current identity (or None) at subscribe time and
  again on every change

Failures are raised as IdentityError carrying a provider code such as
"auth/wrong-password". Mapping codes to user-facing messages is the
orchestrator's job, not the provider's.
"""

from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Optional

import structlog
from pydantic import BaseModel


logger = structlog.get_logger(__name__)


class AuthIdentity(BaseModel):
    """A stable identity as reported by the provider."""

    uid: str
    email: Optional[str] = None


IdentityListener = Callable[[Optional[AuthIdentity]], Awaitable[None]]


class IdentityError(Exception):
    """Raised when the provider rejects an operation."""

    def __init__(self, code: str, message: str = ""):
        self.code = code
        self.message = message or code
        super().__init__(f"{code}: {self.message}")


class IdentityNotConfiguredError(IdentityError):
    """Raised when the provider has no usable configuration."""

    def __init__(self, message: str = "Identity provider is not configured"):
        super().__init__("auth/not-configured", message)


class IdentityProviderInterface(ABC):
    """
    Abstract identity provider.

    Subclasses report identity changes through `_set_identity`, which
    updates the current identity and awaits every subscribed listener.
    """

    def __init__(self):
        self._current: Optional[AuthIdentity] = None
        self._listeners: list[IdentityListener] = []

    @property
    def current_identity(self) -> Optional[AuthIdentity]:
        return self._current

    @abstractmethod
    async def authenticate(self, email: str, password: str) -> AuthIdentity:
        """Sign in with an existing account."""
        pass

    @abstractmethod
    async def register(self, email: str, password: str) -> AuthIdentity:
        """Create a new account and sign in with it."""
        pass

    @abstractmethod
    async def change_credential(self, current_password: str, new_password: str) -> None:
        """Replace the signed-in user's password. Requires the current one."""
        pass

    async def sign_out(self) -> None:
        await self._set_identity(None)

    async def subscribe(self, listener: IdentityListener) -> Callable[[], None]:
        """
        Register a listener for identity changes.

        The listener is awaited immediately with the current identity.
        Returns a function that removes the listener again.
        """
        self._listeners.append(listener)
        await listener(self._current)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def _set_identity(self, identity: Optional[AuthIdentity]) -> None:
        self._current = identity
        logger.debug(
            "identity_changed",
            uid=identity.uid if identity else None,
            listeners=len(self._listeners),
        )
        for listener in list(self._listeners):
            await listener(identity)
