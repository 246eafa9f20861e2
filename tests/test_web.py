from unittest.mock import MagicMock

import pytest

from new_user_report.auth import AuthState
from new_user_report.errors import ApiError, AuthError
from new_user_report.service import ReportService
from new_user_report.web import create_app


@pytest.fixture
def auth():
    auth = MagicMock()
    auth.state = AuthState.UNAUTHENTICATED
    auth.get_active_account.return_value = None
    return auth


@pytest.fixture
def graph():
    return MagicMock()


@pytest.fixture
def service(app_config, auth, graph, users):
    service = ReportService(app_config, auth=auth, client=graph)
    service.directory.replace(users)
    return service


@pytest.fixture
def client(service):
    app = create_app(service=service)
    app.config["TESTING"] = True
    return app.test_client()


def test_index_renders_departments(client):
    response = client.get("/")

    assert response.status_code == 200
    body = response.get_data(as_text=True)
    assert '<option value="HR"' in body
    assert '<option value="IT"' in body
    assert "Login" in body


def test_search_renders_matching_rows(client):
    response = client.get("/search", query_string={"department": "IT"})

    body = response.get_data(as_text=True)
    assert "<td>Bob</td>" in body
    assert "<td>Alice</td>" not in body


def test_search_without_results_shows_notice(client):
    response = client.get("/search", query_string={"search_text": "zzz"})

    assert "No matching results found." in response.get_data(as_text=True)


def test_search_with_bad_license_value_is_reported(client):
    response = client.get("/search", query_string={"license_status": "Sometimes"}, follow_redirects=True)

    assert "Unknown license status" in response.get_data(as_text=True)


def test_download_csv_exports_last_result(client):
    client.get("/search", query_string={"department": "HR"})

    response = client.get("/report.csv")

    assert response.status_code == 200
    assert response.mimetype == "text/csv"
    assert "Recently_Created_Users_Report.csv" in response.headers["Content-Disposition"]
    lines = response.get_data(as_text=True).splitlines()
    assert lines[0] == "Display Name,UPN,Email,Department,Role,License Status,Created Date"
    assert lines[1].startswith("Alice,")
    assert len(lines) == 2


def test_download_csv_without_results_redirects_with_notice(client):
    response = client.get("/report.csv", follow_redirects=True)

    assert response.mimetype == "text/html"
    assert "No data available to download." in response.get_data(as_text=True)


def test_email_without_address_skips_network(client, graph):
    client.get("/search")

    response = client.post("/email", data={"admin_email": ""}, follow_redirects=True)

    assert "Please provide an admin email." in response.get_data(as_text=True)
    graph.call.assert_not_called()


def test_email_sends_report(client, graph):
    client.get("/search")

    response = client.post("/email", data={"admin_email": "admin@contoso.com"}, follow_redirects=True)

    assert "Report sent successfully!" in response.get_data(as_text=True)
    assert graph.call.call_args.args[0] == "/me/sendMail"


def test_email_failure_is_reported(client, graph):
    client.get("/search")
    graph.call.side_effect = ApiError(503, "Service Unavailable", "busy")

    response = client.post("/email", data={"admin_email": "admin@contoso.com"}, follow_redirects=True)

    assert "Failed to send the report." in response.get_data(as_text=True)


def test_login_redirects_to_identity_provider(client, auth):
    auth.begin_web_login.return_value = {"auth_uri": "https://login.example/authorize", "state": "s"}

    response = client.get("/login")

    assert response.status_code == 302
    assert response.headers["Location"] == "https://login.example/authorize"
    auth.begin_web_login.assert_called_once_with("http://localhost:8000/auth/callback")


def test_callback_without_flow_is_rejected(client, auth):
    response = client.get("/auth/callback?code=abc", follow_redirects=True)

    assert "could not be validated" in response.get_data(as_text=True)
    auth.complete_web_login.assert_not_called()


def test_callback_completes_login_and_loads_users(client, auth, graph, graph_users):
    auth.complete_web_login.return_value = {"username": "admin@contoso.com"}
    graph.call.return_value = {"value": graph_users[:1]}
    with client.session_transaction() as session:
        session["auth_flow"] = {"state": "s", "auth_uri": "https://login.example/authorize"}

    response = client.get("/auth/callback?code=abc&state=s", follow_redirects=True)

    assert "Login successful." in response.get_data(as_text=True)
    auth.complete_web_login.assert_called_once_with(
        {"state": "s", "auth_uri": "https://login.example/authorize"},
        {"code": "abc", "state": "s"},
    )


def test_callback_auth_failure_is_reported(client, auth):
    auth.complete_web_login.side_effect = AuthError("consent denied")
    with client.session_transaction() as session:
        session["auth_flow"] = {"state": "s"}

    response = client.get("/auth/callback?error=access_denied&state=s", follow_redirects=True)

    assert "Login failed: consent denied" in response.get_data(as_text=True)


def test_logout_notifies_operator(client, auth):
    response = client.get("/logout", follow_redirects=True)

    assert "Logout successful." in response.get_data(as_text=True)
    auth.logout.assert_called_once_with()
