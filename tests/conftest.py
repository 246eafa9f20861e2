import pytest

from new_user_report.config import AppConfig, AuthConfig
from new_user_report.models import UserRecord


@pytest.fixture
def app_config(tmp_path):
    config = AppConfig(auth=AuthConfig(tenant_id="tenant-id", client_id="client-id"))
    config.report.output_dir = tmp_path
    return config


@pytest.fixture
def graph_users():
    return [
        {
            "displayName": "Alice",
            "mail": "a@x.com",
            "department": "HR",
            "assignedLicenses": [],
            "createdDateTime": "2024-01-01T00:00:00Z",
        },
        {
            "displayName": "Bob",
            "mail": "b@x.com",
            "department": "IT",
            "assignedLicenses": [{}],
            "createdDateTime": "2024-06-01T00:00:00Z",
        },
    ]


@pytest.fixture
def users(graph_users):
    return [UserRecord.from_graph(entry) for entry in graph_users]
