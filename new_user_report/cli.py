"""Command line interface for the recently created users report."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer

from .config import AppConfig, ConfigurationError, load_config
from .errors import AuthError, ReportError
from .models import FilterCriteria
from .report import REPORT_HEADERS, build_rows
from .service import ReportService

app = typer.Typer(help="Report on Microsoft 365 users created in the last six months.")
logger = logging.getLogger(__name__)


def _load_configuration(config_path: Optional[Path]) -> AppConfig:
    try:
        return load_config(config_path)
    except ConfigurationError as exc:
        typer.echo(f"Error: {exc}")
        raise typer.Exit(code=1)


def _signed_in_service(config: AppConfig, device_code: bool) -> ReportService:
    service = ReportService(config)
    try:
        service.login(
            method="device_code" if device_code else "interactive",
            on_device_code=typer.echo,
        )
    except AuthError as exc:
        logger.error("Login failed: %s", exc)
        typer.echo(f"Login failed: {exc}")
        raise typer.Exit(code=1)
    except ReportError as exc:
        logger.exception("Unable to load users")
        typer.echo(f"Error: {exc}")
        raise typer.Exit(code=1)
    typer.echo("Login successful.")
    return service


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@app.command("departments")
def list_departments(
    device_code: bool = typer.Option(
        False, "--device-code", help="Sign in with a device code instead of a browser window."
    ),
    config_path: Optional[Path] = typer.Option(
        None, "--config", help="Path to a specific settings file (overrides default)."
    ),
) -> None:
    """List the departments of recently created users."""

    config = _load_configuration(config_path)
    service = _signed_in_service(config, device_code)

    departments = service.directory.departments
    if not departments:
        typer.echo("No departments found.")
        raise typer.Exit(code=0)
    for department in departments:
        typer.echo(f"- {department}")


@app.command("report")
def run_report(
    search_text: str = typer.Option("", "--search", help="Match display name, UPN or email."),
    from_date: str = typer.Option("", "--from", help="Created on or after (YYYY-MM-DD). Needs --to."),
    to_date: str = typer.Option("", "--to", help="Created on or before (YYYY-MM-DD). Needs --from."),
    license_status: str = typer.Option("", "--license", help="Licensed or Unlicensed."),
    department: str = typer.Option("", "--department", help="Exact department name."),
    csv: bool = typer.Option(False, "--csv", help="Write the result to a CSV file."),
    output_dir: Optional[Path] = typer.Option(
        None, "--output-dir", help="Directory for the CSV file (defaults to report.output_dir)."
    ),
    email: Optional[str] = typer.Option(None, "--email", help="Mail the result to this address."),
    device_code: bool = typer.Option(
        False, "--device-code", help="Sign in with a device code instead of a browser window."
    ),
    config_path: Optional[Path] = typer.Option(
        None, "--config", help="Path to a specific settings file (overrides default)."
    ),
) -> None:
    """Search recently created users and optionally export or mail the result."""

    config = _load_configuration(config_path)
    try:
        criteria = FilterCriteria.from_form(
            {
                "search_text": search_text,
                "from_date": from_date,
                "to_date": to_date,
                "license_status": license_status,
                "department": department,
            }
        )
    except ReportError as exc:
        raise typer.BadParameter(str(exc))

    service = _signed_in_service(config, device_code)
    result = service.search(criteria)
    if result.empty:
        typer.echo("No matching results found.")
    else:
        typer.echo(" | ".join(REPORT_HEADERS))
        for row in build_rows(result.users):
            typer.echo(" | ".join(row))
        typer.echo(f"{len(result.users)} users.")

    failed = False
    if csv:
        try:
            path = service.write_csv(output_dir)
        except ReportError as exc:
            typer.echo(str(exc))
            failed = True
        else:
            typer.echo(f"Report written to {path}")

    if email is not None:
        try:
            service.email_report(email)
        except ReportError as exc:
            logger.error("Error sending report: %s", exc)
            typer.echo(f"Failed to send the report: {exc}")
            failed = True
        else:
            typer.echo("Report sent successfully!")

    if failed:
        raise typer.Exit(code=1)


@app.command("serve")
def serve(
    config_path: Optional[Path] = typer.Option(
        None, "--config", help="Path to a specific settings file (overrides default)."
    ),
    debug: bool = typer.Option(False, "--debug", help="Run Flask in debug mode."),
) -> None:
    """Run the local web interface."""

    from .web import main as run_web

    try:
        run_web(config_path, debug=debug)
    except ConfigurationError as exc:
        typer.echo(f"Error: {exc}")
        raise typer.Exit(code=1)


def run():
    app()


if __name__ == "__main__":
    run()
