"""Data models for directory users and report filters."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple

from .errors import ValidationError


def _optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value)


def parse_timestamp(raw: Any) -> Optional[datetime]:
    """Parse an ISO 8601 value (``Z`` suffix allowed) into an aware UTC datetime."""

    if not raw:
        return None
    if isinstance(raw, datetime):
        dt = raw
    else:
        text = str(raw).strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


class LicenseStatus(str, Enum):
    """License filter choices offered in the search form."""

    ANY = ""
    LICENSED = "Licensed"
    UNLICENSED = "Unlicensed"

    @classmethod
    def parse(cls, raw: Optional[str]) -> "LicenseStatus":
        cleaned = (raw or "").strip().lower()
        if cleaned in {"", "any"}:
            return cls.ANY
        for status in cls:
            if status.value.lower() == cleaned:
                return status
        raise ValidationError(f"Unknown license status '{raw}'. Use Licensed or Unlicensed.")


@dataclass(frozen=True)
class UserRecord:
    """A user returned by the Graph ``/users`` query, kept verbatim."""

    display_name: Optional[str] = None
    user_principal_name: Optional[str] = None
    mail: Optional[str] = None
    department: Optional[str] = None
    role: Optional[str] = None
    assigned_licenses: Tuple[Dict[str, Any], ...] = ()
    created_date_time: Optional[str] = None

    @classmethod
    def from_graph(cls, data: Mapping[str, Any]) -> "UserRecord":
        licenses = data.get("assignedLicenses") or []
        return cls(
            display_name=_optional_str(data.get("displayName")),
            user_principal_name=_optional_str(data.get("userPrincipalName")),
            mail=_optional_str(data.get("mail")),
            department=_optional_str(data.get("department")),
            role=_optional_str(data.get("role")),
            assigned_licenses=tuple(dict(entry or {}) for entry in licenses),
            created_date_time=_optional_str(data.get("createdDateTime")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "displayName": self.display_name,
            "userPrincipalName": self.user_principal_name,
            "mail": self.mail,
            "department": self.department,
            "assignedLicenses": [dict(entry) for entry in self.assigned_licenses],
            "createdDateTime": self.created_date_time,
        }

    @property
    def created(self) -> Optional[datetime]:
        return parse_timestamp(self.created_date_time)

    @property
    def is_licensed(self) -> bool:
        return len(self.assigned_licenses) > 0

    @property
    def license_status(self) -> LicenseStatus:
        return LicenseStatus.LICENSED if self.is_licensed else LicenseStatus.UNLICENSED


@dataclass(frozen=True)
class FilterCriteria:
    """Search parameters collected from the operator for a single query."""

    search_text: str = ""
    from_date: Optional[datetime] = None
    to_date: Optional[datetime] = None
    license_status: LicenseStatus = LicenseStatus.ANY
    department: Optional[str] = None

    @classmethod
    def from_form(cls, form: Mapping[str, Any]) -> "FilterCriteria":
        """Build criteria from raw form or CLI values; blank values are inactive."""

        from_raw = (form.get("from_date") or "").strip()
        to_raw = (form.get("to_date") or "").strip()
        from_date = parse_timestamp(from_raw) if from_raw else None
        to_date = parse_timestamp(to_raw) if to_raw else None
        if from_raw and from_date is None:
            raise ValidationError(f"Invalid from date '{from_raw}'. Use YYYY-MM-DD.")
        if to_raw and to_date is None:
            raise ValidationError(f"Invalid to date '{to_raw}'. Use YYYY-MM-DD.")

        return cls(
            search_text=str(form.get("search_text") or ""),
            from_date=from_date,
            to_date=to_date,
            license_status=LicenseStatus.parse(form.get("license_status")),
            department=(form.get("department") or None),
        )

    def to_form(self) -> Dict[str, str]:
        return {
            "search_text": self.search_text,
            "from_date": self.from_date.date().isoformat() if self.from_date else "",
            "to_date": self.to_date.date().isoformat() if self.to_date else "",
            "license_status": self.license_status.value,
            "department": self.department or "",
        }

    @property
    def is_empty(self) -> bool:
        return not (
            self.search_text
            or (self.from_date and self.to_date)
            or self.license_status is not LicenseStatus.ANY
            or self.department
        )


@dataclass
class SearchResult:
    """Outcome of a search: matching users plus the criteria that produced them."""

    criteria: FilterCriteria
    users: Tuple[UserRecord, ...] = field(default_factory=tuple)

    @property
    def empty(self) -> bool:
        return not self.users


__all__ = [
    "FilterCriteria",
    "LicenseStatus",
    "SearchResult",
    "UserRecord",
    "parse_timestamp",
]
