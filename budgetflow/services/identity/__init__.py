"""
Identity Services Package

Provides the identity provider interface and its implementations:
Firebase Authentication (REST) and the legacy local credential store.
"""

from budgetflow.services.identity.interface import (
    AuthIdentity,
    IdentityError,
    IdentityListener,
    IdentityNotConfiguredError,
    IdentityProviderInterface,
)
from budgetflow.services.identity.firebase_auth import FirebaseIdentityProvider
from budgetflow.services.identity.local import LocalIdentityProvider

__all__ = [
    "AuthIdentity",
    "FirebaseIdentityProvider",
    "IdentityError",
    "IdentityListener",
    "IdentityNotConfiguredError",
    "IdentityProviderInterface",
    "LocalIdentityProvider",
]
