"""Delegated sign-in and silent token acquisition against Microsoft Entra ID."""
from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

import msal
import requests

from .config import AuthConfig
from .errors import AuthError, TransportError


logger = logging.getLogger(__name__)


class AuthState(str, Enum):
    """Lifecycle of the operator session."""

    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"
    TOKEN_EXPIRED_NEEDS_INTERACTIVE = "token_expired_needs_interactive"


def _describe_failure(result: Optional[Mapping[str, Any]], fallback: str) -> str:
    if not result:
        return fallback
    return str(result.get("error_description") or result.get("error") or fallback)


class AuthSession:
    """Holds the active account and hands out Graph access tokens.

    Only one operator is signed in per process. Tokens are obtained silently
    from MSAL's in-memory cache; when that fails the session moves to
    ``TOKEN_EXPIRED_NEEDS_INTERACTIVE`` and the caller decides whether to
    prompt for a new login.
    """

    def __init__(
        self,
        config: AuthConfig,
        application: Optional[msal.PublicClientApplication] = None,
    ) -> None:
        self._config = config
        self._app = application or msal.PublicClientApplication(
            client_id=config.client_id,
            authority=config.authority,
        )
        self._account: Optional[Dict[str, Any]] = None
        self._state = AuthState.UNAUTHENTICATED

    @property
    def state(self) -> AuthState:
        return self._state

    @property
    def login_scopes(self) -> List[str]:
        return list(self._config.login_scopes)

    def get_active_account(self) -> Optional[Dict[str, Any]]:
        return self._account

    # ------------------------------------------------------------------ #
    # Interactive login                                                  #
    # ------------------------------------------------------------------ #
    def login(
        self,
        method: str = "interactive",
        on_device_code: Optional[Callable[[str], None]] = None,
    ) -> Dict[str, Any]:
        """Run an interactive login and make the signed-in account active.

        ``method`` is ``"interactive"`` (system browser) or ``"device_code"``.
        On failure the previous session, if any, is left untouched.
        """

        if method == "interactive":
            result = self._guarded(
                lambda: self._app.acquire_token_interactive(
                    scopes=self.login_scopes,
                    prompt="select_account",
                )
            )
        elif method == "device_code":
            result = self._guarded(lambda: self._device_code_login(on_device_code))
        else:
            raise AuthError(f"Unsupported login method '{method}'.")
        return self._activate(result)

    def begin_web_login(self, redirect_uri: str) -> Dict[str, Any]:
        """Start an auth-code flow; the returned dict carries ``auth_uri``."""

        flow = self._guarded(
            lambda: self._app.initiate_auth_code_flow(
                scopes=self.login_scopes,
                redirect_uri=redirect_uri,
                prompt="select_account",
            )
        )
        if "auth_uri" not in flow:
            raise AuthError(_describe_failure(flow, "Unable to start sign-in."))
        return flow

    def complete_web_login(
        self, flow: Mapping[str, Any], auth_response: Mapping[str, Any]
    ) -> Dict[str, Any]:
        result = self._guarded(
            lambda: self._app.acquire_token_by_auth_code_flow(dict(flow), dict(auth_response))
        )
        return self._activate(result)

    def logout(self) -> None:
        account = self._account
        if account is not None:
            self._app.remove_account(account)
            logger.info("Signed out %s", account.get("username"))
        self._account = None
        self._state = AuthState.UNAUTHENTICATED

    # ------------------------------------------------------------------ #
    # Token acquisition                                                  #
    # ------------------------------------------------------------------ #
    def acquire_token(self, scopes: Iterable[str]) -> str:
        """Return an access token for ``scopes`` without user interaction."""

        account = self._account
        if account is None:
            raise AuthError("No active session. Please log in first.")

        try:
            result = self._app.acquire_token_silent(list(scopes), account=account)
        except requests.RequestException as exc:
            raise TransportError(f"Unable to reach the identity provider: {exc}") from exc

        if not result or "access_token" not in result:
            self._state = AuthState.TOKEN_EXPIRED_NEEDS_INTERACTIVE
            logger.warning(
                "Silent token acquisition failed for %s: %s",
                account.get("username"),
                _describe_failure(result, "no cached token"),
            )
            raise AuthError(
                "Your session has expired or consent was revoked. Please log in again.",
                needs_interactive=True,
            )
        self._state = AuthState.AUTHENTICATED
        return str(result["access_token"])

    # ------------------------------------------------------------------ #
    # Helpers                                                            #
    # ------------------------------------------------------------------ #
    def _device_code_login(
        self, on_device_code: Optional[Callable[[str], None]]
    ) -> Dict[str, Any]:
        flow = self._app.initiate_device_flow(scopes=self.login_scopes)
        if "user_code" not in flow:
            raise AuthError(_describe_failure(flow, "Unable to start device code login."))
        if on_device_code is not None:
            on_device_code(flow["message"])
        return self._app.acquire_token_by_device_flow(flow)

    @staticmethod
    def _guarded(action: Callable[[], Dict[str, Any]]) -> Dict[str, Any]:
        try:
            return action()
        except requests.RequestException as exc:
            raise AuthError(f"Login failed: unable to reach the identity provider ({exc}).") from exc
        except ValueError as exc:
            # MSAL raises ValueError for state mismatches and malformed responses.
            raise AuthError(f"Login failed: {exc}") from exc

    def _activate(self, result: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
        if not result or "access_token" not in result:
            logger.error(
                "Login failed (error=%s, error_description=%s, correlation_id=%s)",
                (result or {}).get("error"),
                (result or {}).get("error_description"),
                (result or {}).get("correlation_id"),
            )
            raise AuthError(_describe_failure(result, "Login failed."))

        claims = result.get("id_token_claims") or {}
        username = claims.get("preferred_username")
        accounts = self._app.get_accounts(username=username) if username else []
        if not accounts:
            accounts = self._app.get_accounts()
        if not accounts:
            raise AuthError("Login succeeded but no account was returned by the identity provider.")

        self._account = accounts[0]
        self._state = AuthState.AUTHENTICATED
        logger.info("Signed in as %s", self._account.get("username") or username)
        return self._account


__all__ = ["AuthSession", "AuthState"]
