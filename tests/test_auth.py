from unittest.mock import MagicMock

import pytest
import requests

from new_user_report.auth import AuthSession, AuthState
from new_user_report.errors import AuthError, TransportError


ACCOUNT = {"username": "admin@contoso.com", "home_account_id": "abc"}
TOKEN_RESULT = {
    "access_token": "token",
    "id_token_claims": {"preferred_username": "admin@contoso.com"},
}


@pytest.fixture
def msal_app():
    app = MagicMock()
    app.get_accounts.return_value = [ACCOUNT]
    return app


@pytest.fixture
def session(app_config, msal_app):
    return AuthSession(app_config.auth, application=msal_app)


def test_new_session_is_unauthenticated(session):
    assert session.state is AuthState.UNAUTHENTICATED
    assert session.get_active_account() is None


def test_interactive_login_sets_active_account(session, msal_app):
    msal_app.acquire_token_interactive.return_value = TOKEN_RESULT

    account = session.login()

    assert account == ACCOUNT
    assert session.get_active_account() == ACCOUNT
    assert session.state is AuthState.AUTHENTICATED
    msal_app.acquire_token_interactive.assert_called_once_with(
        scopes=["User.Read.All", "Directory.Read.All", "Mail.Send"],
        prompt="select_account",
    )
    msal_app.get_accounts.assert_called_once_with(username="admin@contoso.com")


def test_failed_login_keeps_previous_session(session, msal_app):
    msal_app.acquire_token_interactive.side_effect = [
        TOKEN_RESULT,
        {"error": "access_denied", "error_description": "User cancelled the flow"},
    ]
    session.login()

    with pytest.raises(AuthError, match="User cancelled the flow"):
        session.login()

    assert session.get_active_account() == ACCOUNT
    assert session.state is AuthState.AUTHENTICATED


def test_failed_login_without_previous_session_stays_unauthenticated(session, msal_app):
    msal_app.acquire_token_interactive.side_effect = requests.ConnectionError("offline")

    with pytest.raises(AuthError, match="unable to reach"):
        session.login()

    assert session.get_active_account() is None
    assert session.state is AuthState.UNAUTHENTICATED


def test_unknown_login_method_is_rejected(session):
    with pytest.raises(AuthError):
        session.login(method="carrier-pigeon")


def test_device_code_login_reports_message(session, msal_app):
    msal_app.initiate_device_flow.return_value = {"user_code": "ABC", "message": "Go to the device page"}
    msal_app.acquire_token_by_device_flow.return_value = TOKEN_RESULT
    messages = []

    session.login(method="device_code", on_device_code=messages.append)

    assert messages == ["Go to the device page"]
    assert session.state is AuthState.AUTHENTICATED


def test_device_code_login_fails_when_flow_cannot_start(session, msal_app):
    msal_app.initiate_device_flow.return_value = {"error": "invalid_client"}

    with pytest.raises(AuthError, match="invalid_client"):
        session.login(method="device_code")

    msal_app.acquire_token_by_device_flow.assert_not_called()


def test_web_login_round_trip(session, msal_app):
    flow = {"auth_uri": "https://login.example/authorize", "state": "xyz"}
    msal_app.initiate_auth_code_flow.return_value = flow
    msal_app.acquire_token_by_auth_code_flow.return_value = TOKEN_RESULT

    started = session.begin_web_login("http://localhost:8000/auth/callback")
    account = session.complete_web_login(started, {"code": "c", "state": "xyz"})

    assert started == flow
    assert account == ACCOUNT
    msal_app.acquire_token_by_auth_code_flow.assert_called_once_with(flow, {"code": "c", "state": "xyz"})


def test_web_login_state_mismatch_is_auth_error(session, msal_app):
    msal_app.acquire_token_by_auth_code_flow.side_effect = ValueError("state missing from auth_code_flow")

    with pytest.raises(AuthError, match="state missing"):
        session.complete_web_login({"state": "a"}, {"state": "b"})

    assert session.get_active_account() is None


def test_acquire_token_without_session_fails_before_msal(session, msal_app):
    with pytest.raises(AuthError):
        session.acquire_token(["Mail.Send"])

    msal_app.acquire_token_silent.assert_not_called()


def test_acquire_token_returns_silent_token(session, msal_app):
    msal_app.acquire_token_interactive.return_value = TOKEN_RESULT
    msal_app.acquire_token_silent.return_value = {"access_token": "silent"}
    session.login()

    assert session.acquire_token(("Mail.Send",)) == "silent"
    msal_app.acquire_token_silent.assert_called_once_with(["Mail.Send"], account=ACCOUNT)


def test_silent_failure_requires_interactive_login(session, msal_app):
    msal_app.acquire_token_interactive.return_value = TOKEN_RESULT
    msal_app.acquire_token_silent.return_value = None
    session.login()

    with pytest.raises(AuthError) as excinfo:
        session.acquire_token(["Mail.Send"])

    assert excinfo.value.needs_interactive is True
    assert session.state is AuthState.TOKEN_EXPIRED_NEEDS_INTERACTIVE
    msal_app.acquire_token_interactive.assert_called_once()


def test_silent_network_failure_is_transport_error(session, msal_app):
    msal_app.acquire_token_interactive.return_value = TOKEN_RESULT
    msal_app.acquire_token_silent.side_effect = requests.ConnectionError("dns")
    session.login()

    with pytest.raises(TransportError):
        session.acquire_token(["Mail.Send"])


def test_logout_removes_account(session, msal_app):
    msal_app.acquire_token_interactive.return_value = TOKEN_RESULT
    session.login()

    session.logout()

    msal_app.remove_account.assert_called_once_with(ACCOUNT)
    assert session.get_active_account() is None
    assert session.state is AuthState.UNAUTHENTICATED
