"""Flask-powered web interface for the recently created users report."""
from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Optional

from flask import (
    Flask,
    Response,
    current_app,
    flash,
    redirect,
    render_template,
    request,
    session,
    url_for,
)

from .config import AppConfig, ensure_default_config, load_config
from .errors import AuthError, ReportError, ValidationError
from .models import FilterCriteria, LicenseStatus
from .report import REPORT_HEADERS, build_rows
from .service import ReportService


_TEMPLATE_FOLDER = Path(__file__).resolve().parent / "templates"
_EXTENSION_KEY = "new_user_report"


def create_app(
    config_path: Optional[Path | str] = None,
    service: Optional[ReportService] = None,
) -> Flask:
    """Create and configure the Flask application."""

    if service is None:
        resolved_config_path = Path(config_path) if config_path else None
        ensure_default_config(resolved_config_path)
        service = ReportService(load_config(resolved_config_path))

    app = Flask(__name__, template_folder=str(_TEMPLATE_FOLDER))
    app.config["SECRET_KEY"] = service.config.web.secret_key
    app.extensions[_EXTENSION_KEY] = service

    register_routes(app)
    return app


def _service() -> ReportService:
    return current_app.extensions[_EXTENSION_KEY]


def _auth_redirect_uri(config: AppConfig) -> str:
    if config.auth.redirect_uri:
        return config.auth.redirect_uri
    base = request.url_root.rstrip("/")
    return f"{base}{url_for('auth_callback')}"


def _render_index(criteria: Optional[FilterCriteria] = None) -> str:
    service = _service()
    result = service.last_result
    active = criteria or (result.criteria if result else FilterCriteria())
    return render_template(
        "index.html",
        account=service.auth.get_active_account(),
        auth_state=service.state.value,
        departments=service.directory.departments,
        license_choices=[status.value for status in LicenseStatus if status is not LicenseStatus.ANY],
        form=active.to_form(),
        rows=build_rows(service.results),
        headers=REPORT_HEADERS,
    )


def register_routes(app: Flask) -> None:
    """Attach all web routes to the provided Flask app."""

    @app.route("/")
    def index() -> str:
        return _render_index()

    @app.route("/login")
    def login() -> Any:
        service = _service()
        try:
            flow = service.begin_web_login(_auth_redirect_uri(service.config))
        except AuthError as exc:
            app.logger.error("Login could not be started: %s", exc)
            flash(f"Login failed: {exc}", "error")
            return redirect(url_for("index"))
        session["auth_flow"] = flow
        return redirect(flow["auth_uri"])

    @app.route("/auth/callback")
    def auth_callback() -> Any:
        service = _service()
        flow = session.pop("auth_flow", None)
        if not flow:
            flash("Authentication response could not be validated. Please try again.", "error")
            return redirect(url_for("index"))

        try:
            account = service.complete_web_login(flow, request.args.to_dict())
        except AuthError as exc:
            app.logger.error("Login failed: %s", exc)
            flash(f"Login failed: {exc}", "error")
            return redirect(url_for("index"))
        except ReportError as exc:
            app.logger.exception("Signed in but the user directory could not be loaded")
            flash(f"Login successful, but users could not be loaded: {exc}", "error")
            return redirect(url_for("index"))

        app.logger.info(
            "Auth callback: user=%s loaded %s users",
            account.get("username"),
            len(service.directory.users),
        )
        flash("Login successful.", "success")
        return redirect(url_for("index"))

    @app.route("/logout")
    def logout() -> Any:
        _service().logout()
        session.clear()
        flash("Logout successful.", "success")
        return redirect(url_for("index"))

    @app.route("/search")
    def search() -> Any:
        service = _service()
        try:
            criteria = FilterCriteria.from_form(request.args)
        except ValidationError as exc:
            flash(str(exc), "error")
            return redirect(url_for("index"))

        result = service.search(criteria)
        if result.empty:
            flash("No matching results found.", "warning")
        return _render_index(criteria)

    @app.route("/report.csv")
    def download_csv() -> Any:
        service = _service()
        try:
            content = service.export_csv()
        except ValidationError as exc:
            flash(str(exc), "error")
            return redirect(url_for("index"))

        filename = service.config.report.csv_filename
        return Response(
            content,
            mimetype="text/csv",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )

    @app.route("/email", methods=["POST"])
    def email_report() -> Any:
        service = _service()
        admin_email = request.form.get("admin_email", "")
        try:
            service.email_report(admin_email)
        except ValidationError as exc:
            flash(str(exc), "error")
        except ReportError as exc:
            app.logger.exception("Error sending report: %s", exc)
            flash("Failed to send the report.", "error")
        else:
            flash("Report sent successfully!", "success")
        return redirect(url_for("index"))


def main(config_path: Optional[Path | str] = None, debug: Optional[bool] = None) -> None:
    """Run the development server; requests are handled one at a time."""

    app = create_app(config_path)
    config = app.extensions[_EXTENSION_KEY].config
    if debug is None:
        debug = os.environ.get("NEW_USERS_WEB_DEBUG") == "1"
    app.run(
        host=config.web.host,
        port=config.web.port,
        debug=debug,
        threaded=False,
    )


if __name__ == "__main__":
    main()
