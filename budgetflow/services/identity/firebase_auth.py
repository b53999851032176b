"""
Firebase Authentication Provider

Talks to the Firebase Auth REST API (Identity Toolkit) with httpx. The REST
API reports failures as bare strings such as "EMAIL_NOT_FOUND"; they are
mapped to the "auth/..." codes the web SDK uses so callers see one set of
codes regardless of transport.

No retries: a failed sign-in is reported to the user once.
"""

from typing import Optional

import httpx
import structlog

from budgetflow.config import FirebaseSettings, get_settings
from budgetflow.services.identity.interface import (
    AuthIdentity,
    IdentityError,
    IdentityNotConfiguredError,
    IdentityProviderInterface,
)


logger = structlog.get_logger(__name__)


# REST error string -> SDK-style error code
REST_ERROR_CODES = {
    "EMAIL_NOT_FOUND": "auth/user-not-found",
    "INVALID_PASSWORD": "auth/wrong-password",
    "INVALID_LOGIN_CREDENTIALS": "invalid-login-credentials",
    "INVALID_EMAIL": "auth/invalid-email",
    "MISSING_PASSWORD": "auth/missing-password",
    "TOO_MANY_ATTEMPTS_TRY_LATER": "auth/too-many-requests",
    "USER_DISABLED": "auth/user-disabled",
    "EMAIL_EXISTS": "auth/email-already-in-use",
    "WEAK_PASSWORD": "auth/weak-password",
    "OPERATION_NOT_ALLOWED": "auth/operation-not-allowed",
    "INVALID_ID_TOKEN": "auth/invalid-user-token",
    "TOKEN_EXPIRED": "auth/user-token-expired",
    "CREDENTIAL_TOO_OLD_LOGIN_AGAIN": "auth/requires-recent-login",
}


def map_rest_error(payload: dict) -> IdentityError:
    """
    Build an IdentityError from a Firebase REST error body.

    Messages may carry a detail suffix, e.g.
    "WEAK_PASSWORD : Password should be at least 6 characters".
    """
    error = payload.get("error") or {}
    raw = str(error.get("message") or "UNKNOWN_ERROR")
    key, _, detail = raw.partition(" : ")
    key = key.strip()
    code = REST_ERROR_CODES.get(key, f"auth/{key.lower().replace('_', '-')}")
    return IdentityError(code, detail.strip() or key)


class FirebaseIdentityProvider(IdentityProviderInterface):
    """
    Identity provider backed by Firebase Authentication.

    An httpx.AsyncClient can be injected (tests use one with a
    MockTransport); otherwise a short-lived client is opened per call.
    """

    def __init__(
        self,
        settings: Optional[FirebaseSettings] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__()
        self._settings = settings or get_settings().firebase
        if not self._settings.is_configured:
            raise IdentityNotConfiguredError(
                "Firebase API key is missing or still a placeholder. "
                "Set FIREBASE_API_KEY to a real Web API key."
            )
        self._http = http_client
        self._id_token: Optional[str] = None

    async def _post(self, endpoint: str, body: dict) -> dict:
        url = f"{self._settings.auth_base_url.rstrip('/')}/accounts:{endpoint}"
        params = {"key": self._settings.api_key}

        try:
            if self._http is not None:
                response = await self._http.post(
                    url, params=params, json=body, timeout=self._settings.timeout_seconds
                )
            else:
                async with httpx.AsyncClient(timeout=self._settings.timeout_seconds) as client:
                    response = await client.post(url, params=params, json=body)
        except httpx.HTTPError as e:
            logger.warning("firebase_request_failed", endpoint=endpoint, error=str(e))
            raise IdentityError("auth/network-request-failed", str(e))

        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.is_error:
            error = map_rest_error(data)
            logger.info("firebase_auth_rejected", endpoint=endpoint, code=error.code)
            raise error

        return data

    async def _sign_in(self, email: str, password: str) -> dict:
        return await self._post(
            "signInWithPassword",
            {"email": email, "password": password, "returnSecureToken": True},
        )

    async def authenticate(self, email: str, password: str) -> AuthIdentity:
        data = await self._sign_in(email, password)
        self._id_token = data.get("idToken")
        identity = AuthIdentity(uid=data["localId"], email=data.get("email", email))
        await self._set_identity(identity)
        return identity

    async def register(self, email: str, password: str) -> AuthIdentity:
        data = await self._post(
            "signUp",
            {"email": email, "password": password, "returnSecureToken": True},
        )
        self._id_token = data.get("idToken")
        identity = AuthIdentity(uid=data["localId"], email=data.get("email", email))
        await self._set_identity(identity)
        return identity

    async def change_credential(self, current_password: str, new_password: str) -> None:
        identity = self._current
        if identity is None or not identity.email:
            raise IdentityError("auth/no-current-user", "No user is signed in")

        # Re-prove the current password; this also yields a fresh token
        data = await self._sign_in(identity.email, current_password)
        updated = await self._post(
            "update",
            {
                "idToken": data.get("idToken"),
                "password": new_password,
                "returnSecureToken": True,
            },
        )
        self._id_token = updated.get("idToken", data.get("idToken"))

    async def sign_out(self) -> None:
        self._id_token = None
        await super().sign_out()
