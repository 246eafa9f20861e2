"""Microsoft Graph helper for the directory report."""
from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional

import requests

from .auth import AuthSession
from .config import GraphConfig
from .errors import ApiError, PreconditionError, TransportError


logger = logging.getLogger(__name__)


class GraphClient:
    """Issues authenticated Graph calls on behalf of the signed-in operator."""

    def __init__(
        self,
        auth: AuthSession,
        config: GraphConfig,
        scopes: tuple[str, ...],
        session: Optional[requests.Session] = None,
    ) -> None:
        self._auth = auth
        self._config = config
        self._scopes = tuple(scopes)
        self._session = session or requests.Session()

    @property
    def base_url(self) -> str:
        return self._config.base_url

    def call(
        self,
        endpoint: str,
        method: str = "GET",
        body: Optional[Mapping[str, Any]] = None,
        params: Optional[Mapping[str, str]] = None,
    ) -> Dict[str, Any]:
        """Call ``endpoint`` relative to the Graph base URL and return the decoded body.

        Requires an active session. Success responses without a JSON content
        type yield an empty dict. Non-success statuses raise :class:`ApiError`;
        network failures raise :class:`TransportError`. Nothing is retried.
        """

        if self._auth.get_active_account() is None:
            raise PreconditionError("Please log in first.")

        token = self._auth.acquire_token(self._scopes)
        headers = {"Authorization": f"Bearer {token}"}
        kwargs: Dict[str, Any] = {}
        if body:
            headers["Content-Type"] = "application/json"
            kwargs["json"] = body
        if params:
            kwargs["params"] = dict(params)

        url = self.base_url + endpoint
        logger.debug("Graph %s %s", method, url)
        try:
            response = self._session.request(
                method,
                url,
                headers=headers,
                timeout=self._config.request_timeout,
                **kwargs,
            )
        except requests.RequestException as exc:
            logger.error("Graph %s %s failed: %s", method, endpoint, exc)
            raise TransportError(f"Unable to reach Microsoft Graph: {exc}") from exc

        if not response.ok:
            error_text = response.text
            logger.error("Graph API Error (%s): %s", response.status_code, error_text)
            raise ApiError(response.status_code, response.reason or "", error_text)

        content_type = response.headers.get("Content-Type", "")
        if "application/json" in content_type:
            return response.json()
        return {}


__all__ = ["GraphClient"]
