"""Configuration loading utilities for the new user report toolkit."""
from __future__ import annotations

import os
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

import yaml


DEFAULT_CONFIG_PATH = Path("config/settings.yaml")
DEFAULT_TEMPLATE_PATH = Path("config/settings.example.yaml")
ENV_CONFIG_PATH = "NEW_USERS_CONFIG"
ENV_PREFIX = "NEW_USERS_"

DEFAULT_LOGIN_SCOPES = ("User.Read.All", "Directory.Read.All", "Mail.Send")
DEFAULT_API_SCOPES = ("User.ReadWrite.All", "Directory.ReadWrite.All", "Mail.Send")


@dataclass
class AuthConfig:
    """Settings for delegated sign-in against Microsoft Entra ID."""

    tenant_id: str
    client_id: str
    redirect_uri: str = "http://localhost:8000/auth/callback"
    login_scopes: tuple[str, ...] = DEFAULT_LOGIN_SCOPES
    api_scopes: tuple[str, ...] = DEFAULT_API_SCOPES

    @property
    def authority(self) -> str:
        return f"https://login.microsoftonline.com/{self.tenant_id}"


@dataclass
class GraphConfig:
    """Settings for the Microsoft Graph directory queries."""

    base_url: str = "https://graph.microsoft.com/v1.0"
    lookback_days: int = 180
    request_timeout: Optional[float] = None


@dataclass
class ReportConfig:
    """Settings for CSV export and the mailed report."""

    csv_filename: str = "Recently_Created_Users_Report.csv"
    email_subject: str = "Recently Created Users Report"
    output_dir: Path = field(default_factory=lambda: Path("."))


@dataclass
class WebConfig:
    """Settings for the local web interface."""

    host: str = "localhost"
    port: int = 8000
    secret_key: str = "new-user-report-secret"


@dataclass
class AppConfig:
    """Aggregate configuration for the application."""

    auth: AuthConfig
    graph: GraphConfig = field(default_factory=GraphConfig)
    report: ReportConfig = field(default_factory=ReportConfig)
    web: WebConfig = field(default_factory=WebConfig)


class ConfigurationError(RuntimeError):
    """Raised when the configuration file or environment variables are invalid."""


def _load_from_file(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise ConfigurationError(
            f"Configuration file '{path}' does not exist. "
            "Create it from 'config/settings.example.yaml' or set environment variables."
        )
    with path.open("r", encoding="utf-8") as file:
        try:
            return yaml.safe_load(file) or {}
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Configuration file '{path}' is not valid YAML: {exc}") from exc


def _apply_environment_overrides(config_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Override configuration values with environment variables."""

    overrides: Dict[str, Any] = {}
    for key, value in os.environ.items():
        if not key.startswith(ENV_PREFIX) or key == ENV_CONFIG_PATH:
            continue
        path = key[len(ENV_PREFIX) :].lower().split("__")
        node = overrides
        for part in path[:-1]:
            node = node.setdefault(part, {})
        node[path[-1]] = value

    if overrides:
        config_dict = _deep_merge(config_dict, overrides)
    return config_dict


def _deep_merge(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    result = dict(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            result[key] = _deep_merge(base[key], value)
        else:
            result[key] = value
    return result


def _resolve_config_path(path: Optional[Path] = None) -> Path:
    if path is not None:
        return Path(path)
    env_path = os.environ.get(ENV_CONFIG_PATH)
    if env_path:
        return Path(env_path)
    return DEFAULT_CONFIG_PATH


def ensure_default_config(
    path: Optional[Path] = None, template_path: Optional[Path] = None
) -> Path:
    """Ensure a configuration file exists, copying from the example if needed."""

    target_path = _resolve_config_path(path)
    if target_path.exists():
        return target_path

    template = Path(template_path) if template_path is not None else DEFAULT_TEMPLATE_PATH
    if not template.exists():
        raise ConfigurationError(
            "Default configuration template not found. "
            "Ensure 'config/settings.example.yaml' is present or specify a template."
        )

    target_path.parent.mkdir(parents=True, exist_ok=True)
    shutil.copy(template, target_path)
    return target_path


def _load_config_dict(path: Optional[Path] = None) -> Dict[str, Any]:
    resolved_path = _resolve_config_path(path)
    if resolved_path == DEFAULT_CONFIG_PATH:
        ensure_default_config(resolved_path)

    config_dict = _load_from_file(resolved_path)
    return _apply_environment_overrides(config_dict)


def _get_required(config_dict: Dict[str, Any], key: str) -> Dict[str, Any]:
    try:
        section = config_dict[key]
    except KeyError as exc:
        raise ConfigurationError(f"Missing required configuration section: '{key}'.") from exc
    if not isinstance(section, dict):
        raise ConfigurationError(f"Configuration section '{key}' must be a mapping.")
    return section


def _normalize_sequence(value: Any) -> Iterable[Any]:
    if isinstance(value, (list, tuple, set)):
        return value
    if isinstance(value, str):
        return value.split(",")
    return [value]


def _to_scopes(value: Any, default: tuple[str, ...]) -> tuple[str, ...]:
    if value is None:
        return default
    scopes = tuple(filter(None, [str(entry).strip() for entry in _normalize_sequence(value)]))
    return scopes or default


def _to_int(value: Any) -> int:
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        return int(value.strip())
    return int(value)


def _optional_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped or stripped.lower() in {"none", "null"}:
            return None
        return float(stripped)
    return float(value)


def _optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return str(value)


def load_config(path: Optional[Path] = None) -> AppConfig:
    """Load application configuration from disk and environment variables."""

    config_dict = _load_config_dict(path)
    auth_section = _get_required(config_dict, "auth")

    tenant_id = _optional_str(auth_section.get("tenant_id"))
    client_id = _optional_str(auth_section.get("client_id"))
    if not tenant_id or not client_id:
        raise ConfigurationError("Both 'auth.tenant_id' and 'auth.client_id' must be configured.")

    auth_config = AuthConfig(
        tenant_id=tenant_id,
        client_id=client_id,
        redirect_uri=_optional_str(auth_section.get("redirect_uri"))
        or AuthConfig.redirect_uri,
        login_scopes=_to_scopes(auth_section.get("login_scopes"), DEFAULT_LOGIN_SCOPES),
        api_scopes=_to_scopes(auth_section.get("api_scopes"), DEFAULT_API_SCOPES),
    )

    graph_section = config_dict.get("graph") or {}
    default_graph = GraphConfig()
    try:
        graph_config = GraphConfig(
            base_url=(
                _optional_str(graph_section.get("base_url")) or default_graph.base_url
            ).rstrip("/"),
            lookback_days=_to_int(graph_section.get("lookback_days", default_graph.lookback_days)),
            request_timeout=_optional_float(graph_section.get("request_timeout")),
        )
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid graph configuration: {exc}.") from exc
    if graph_config.lookback_days < 1:
        raise ConfigurationError("'graph.lookback_days' must be at least 1.")

    report_section = config_dict.get("report") or {}
    default_report = ReportConfig()
    report_config = ReportConfig(
        csv_filename=_optional_str(report_section.get("csv_filename")) or default_report.csv_filename,
        email_subject=_optional_str(report_section.get("email_subject"))
        or default_report.email_subject,
        output_dir=Path(_optional_str(report_section.get("output_dir")) or default_report.output_dir),
    )

    web_section = config_dict.get("web") or {}
    default_web = WebConfig()
    try:
        web_config = WebConfig(
            host=_optional_str(web_section.get("host")) or default_web.host,
            port=_to_int(web_section.get("port", default_web.port)),
            secret_key=_optional_str(web_section.get("secret_key")) or default_web.secret_key,
        )
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid web configuration: {exc}.") from exc

    return AppConfig(
        auth=auth_config,
        graph=graph_config,
        report=report_config,
        web=web_config,
    )


__all__ = [
    "AppConfig",
    "AuthConfig",
    "ConfigurationError",
    "GraphConfig",
    "ReportConfig",
    "WebConfig",
    "ensure_default_config",
    "load_config",
]
