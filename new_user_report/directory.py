"""Session-scoped cache of recently created directory users."""
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Tuple

from .graph_client import GraphClient
from .filters import derive_departments
from .models import UserRecord


logger = logging.getLogger(__name__)

USER_SELECT_FIELDS = (
    "displayName",
    "userPrincipalName",
    "mail",
    "department",
    "assignedLicenses",
    "createdDateTime",
)


def _isoformat_utc(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class UserDirectory:
    """In-memory list of users, replaced wholesale by each successful fetch."""

    def __init__(self, lookback_days: int = 180) -> None:
        self.lookback_days = lookback_days
        self._users: Tuple[UserRecord, ...] = ()
        self._departments: List[str] = []
        self.fetched_at: Optional[datetime] = None

    @property
    def users(self) -> Tuple[UserRecord, ...]:
        return self._users

    @property
    def departments(self) -> List[str]:
        return list(self._departments)

    def window_start(self, now: Optional[datetime] = None) -> datetime:
        current = now or datetime.now(timezone.utc)
        return current - timedelta(days=self.lookback_days)

    def fetch_users(self, client: GraphClient, now: Optional[datetime] = None) -> Tuple[UserRecord, ...]:
        """Load users created within the lookback window from a single Graph page."""

        since = _isoformat_utc(self.window_start(now))
        payload = client.call(
            "/users",
            params={
                "$filter": f"createdDateTime ge {since}",
                "$select": ",".join(USER_SELECT_FIELDS),
            },
        )
        if payload.get("@odata.nextLink"):
            logger.warning(
                "Graph returned more users than fit in one page; only the first page is shown."
            )
        self.replace([UserRecord.from_graph(entry) for entry in payload.get("value") or []])
        self.fetched_at = now or datetime.now(timezone.utc)
        logger.info("Loaded %s users created since %s", len(self._users), since)
        return self._users

    def fetch_departments(self) -> List[str]:
        self._departments = derive_departments(self._users)
        return self.departments

    def replace(self, users: List[UserRecord]) -> None:
        self._users = tuple(users)
        self.fetch_departments()


__all__ = ["USER_SELECT_FIELDS", "UserDirectory"]
