"""Application state shared by the CLI and web views."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from . import report
from .auth import AuthSession, AuthState
from .config import AppConfig
from .directory import UserDirectory
from .filters import search as filter_users
from .graph_client import GraphClient
from .models import FilterCriteria, SearchResult, UserRecord


logger = logging.getLogger(__name__)


class ReportService:
    """Owns the session, the user cache and the last search result.

    Every view command goes through this object; nothing is kept in module
    globals, so tests and the web app can each build their own instance.
    """

    def __init__(
        self,
        config: AppConfig,
        auth: Optional[AuthSession] = None,
        client: Optional[GraphClient] = None,
        directory: Optional[UserDirectory] = None,
    ) -> None:
        self.config = config
        self.auth = auth or AuthSession(config.auth)
        self.client = client or GraphClient(self.auth, config.graph, config.auth.api_scopes)
        self.directory = directory or UserDirectory(config.graph.lookback_days)
        self.last_result: Optional[SearchResult] = None

    @property
    def state(self) -> AuthState:
        return self.auth.state

    @property
    def results(self) -> Tuple[UserRecord, ...]:
        return self.last_result.users if self.last_result else ()

    # ------------------------------------------------------------------ #
    # Session                                                            #
    # ------------------------------------------------------------------ #
    def login(
        self,
        method: str = "interactive",
        on_device_code: Optional[Callable[[str], None]] = None,
    ) -> Dict[str, Any]:
        account = self.auth.login(method=method, on_device_code=on_device_code)
        self.load_directory()
        return account

    def begin_web_login(self, redirect_uri: str) -> Dict[str, Any]:
        return self.auth.begin_web_login(redirect_uri)

    def complete_web_login(
        self, flow: Mapping[str, Any], auth_response: Mapping[str, Any]
    ) -> Dict[str, Any]:
        account = self.auth.complete_web_login(flow, auth_response)
        self.load_directory()
        return account

    def logout(self) -> None:
        # The user cache is kept; a new login replaces it.
        self.auth.logout()

    # ------------------------------------------------------------------ #
    # Directory and search                                               #
    # ------------------------------------------------------------------ #
    def load_directory(self) -> Tuple[UserRecord, ...]:
        users = self.directory.fetch_users(self.client)
        self.directory.fetch_departments()
        return users

    def search(self, criteria: FilterCriteria) -> SearchResult:
        users = filter_users(self.directory.users, criteria)
        self.last_result = SearchResult(criteria=criteria, users=tuple(users))
        logger.info(
            "Search returned %s of %s users (filters active: %s)",
            len(users),
            len(self.directory.users),
            not criteria.is_empty,
        )
        return self.last_result

    # ------------------------------------------------------------------ #
    # Export                                                             #
    # ------------------------------------------------------------------ #
    def export_csv(self) -> str:
        return report.export_csv(self.results)

    def write_csv(self, directory: Optional[Path] = None) -> Path:
        return report.write_csv(
            self.results,
            directory or self.config.report.output_dir,
            self.config.report.csv_filename,
        )

    def email_report(self, admin_email: str) -> None:
        report.email_report(
            self.client,
            self.results,
            admin_email,
            subject=self.config.report.email_subject,
        )


__all__ = ["ReportService"]
