"""CSV and e-mail rendering of the recently created users report."""
from __future__ import annotations

import html
import logging
from pathlib import Path
from typing import Any, Dict, List, Sequence

from .errors import ValidationError
from .graph_client import GraphClient
from .models import UserRecord


logger = logging.getLogger(__name__)

REPORT_HEADERS = (
    "Display Name",
    "UPN",
    "Email",
    "Department",
    "Role",
    "License Status",
    "Created Date",
)
DEFAULT_CSV_FILENAME = "Recently_Created_Users_Report.csv"
DEFAULT_EMAIL_SUBJECT = "Recently Created Users Report"
MISSING = "N/A"


def format_row(user: UserRecord) -> List[str]:
    created = user.created
    return [
        user.display_name or MISSING,
        user.user_principal_name or MISSING,
        user.mail or MISSING,
        user.department or MISSING,
        user.role or MISSING,
        user.license_status.value,
        created.date().isoformat() if created else MISSING,
    ]


def build_rows(users: Sequence[UserRecord]) -> List[List[str]]:
    return [format_row(user) for user in users]


def render_csv(rows: Sequence[Sequence[str]]) -> str:
    """Join header and rows with commas.

    Cells are not quoted, so a value containing a comma shifts the columns of
    its row.
    """

    lines = [",".join(REPORT_HEADERS)]
    lines.extend(",".join(row) for row in rows)
    return "\n".join(lines)


def export_csv(users: Sequence[UserRecord]) -> str:
    rows = build_rows(users)
    if not rows:
        raise ValidationError("No data available to download.")
    return render_csv(rows)


def write_csv(users: Sequence[UserRecord], directory: Path, filename: str = DEFAULT_CSV_FILENAME) -> Path:
    """Write the CSV report into ``directory``; nothing is written for an empty result."""

    content = export_csv(users)
    directory.mkdir(parents=True, exist_ok=True)
    target = directory / filename
    target.write_text(content, encoding="utf-8")
    logger.info("Wrote %s rows to %s", len(users), target)
    return target


def render_html_table(rows: Sequence[Sequence[str]]) -> str:
    header_html = "".join(f"<th>{html.escape(header)}</th>" for header in REPORT_HEADERS)
    body_html = "".join(
        "<tr>" + "".join(f"<td>{html.escape(cell)}</td>" for cell in row) + "</tr>"
        for row in rows
    )
    return (
        '<table border="1">'
        f"<thead><tr>{header_html}</tr></thead>"
        f"<tbody>{body_html}</tbody>"
        "</table>"
    )


def build_mail_message(admin_email: str, content: str, subject: str = DEFAULT_EMAIL_SUBJECT) -> Dict[str, Any]:
    return {
        "message": {
            "subject": subject,
            "body": {"contentType": "HTML", "content": content},
            "toRecipients": [{"emailAddress": {"address": admin_email}}],
        }
    }


def email_report(
    client: GraphClient,
    users: Sequence[UserRecord],
    admin_email: str,
    subject: str = DEFAULT_EMAIL_SUBJECT,
) -> None:
    """Send the report as an HTML table through ``/me/sendMail``."""

    recipient = (admin_email or "").strip()
    if not recipient:
        raise ValidationError("Please provide an admin email.")

    rows = build_rows(users)
    if not rows:
        raise ValidationError("No data to send via email.")

    message = build_mail_message(recipient, render_html_table(rows), subject)
    client.call("/me/sendMail", "POST", message)
    logger.info("Mailed report with %s rows to %s", len(rows), recipient)


__all__ = [
    "DEFAULT_CSV_FILENAME",
    "DEFAULT_EMAIL_SUBJECT",
    "REPORT_HEADERS",
    "build_mail_message",
    "build_rows",
    "email_report",
    "export_csv",
    "format_row",
    "render_csv",
    "render_html_table",
    "write_csv",
]
