"""Pure filtering helpers over the cached user list."""
from __future__ import annotations

from typing import Iterable, List, Optional, Sequence

from .models import FilterCriteria, LicenseStatus, UserRecord, parse_timestamp


def matches_text(user: UserRecord, search_text: str) -> bool:
    if not search_text:
        return True
    needle = search_text.lower()
    for value in (user.display_name, user.user_principal_name, user.mail):
        if value is not None and needle in value.lower():
            return True
    return False


def matches_date_range(user: UserRecord, criteria: FilterCriteria) -> bool:
    # A single bound leaves the range inactive.
    if criteria.from_date is None or criteria.to_date is None:
        return True
    created = user.created
    if created is None:
        return False
    return parse_timestamp(criteria.from_date) <= created <= parse_timestamp(criteria.to_date)


def matches_license(user: UserRecord, status: LicenseStatus) -> bool:
    if status is LicenseStatus.ANY:
        return True
    return user.license_status is status


def matches_department(user: UserRecord, department: Optional[str]) -> bool:
    if not department:
        return True
    return user.department == department


def search(users: Sequence[UserRecord], criteria: FilterCriteria) -> List[UserRecord]:
    """Return the users matching every active criterion, in their original order."""

    return [
        user
        for user in users
        if matches_text(user, criteria.search_text)
        and matches_date_range(user, criteria)
        and matches_license(user, criteria.license_status)
        and matches_department(user, criteria.department)
    ]


def derive_departments(users: Iterable[UserRecord]) -> List[str]:
    """Distinct non-empty departments in first-seen order."""

    seen: set[str] = set()
    result: List[str] = []
    for user in users:
        department = user.department
        if department and department not in seen:
            seen.add(department)
            result.append(department)
    return result


__all__ = [
    "derive_departments",
    "matches_date_range",
    "matches_department",
    "matches_license",
    "matches_text",
    "search",
]
