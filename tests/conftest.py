"""Pytest configuration and fixtures for opmap-client tests"""
import json
import logging
from typing import Any

import pytest

from opmap_client.api.dispatcher import OperationDispatcher
from opmap_client.api.registry import OperationRegistry
from opmap_client.core.credentials import TokenProvider
from opmap_client.core.metrics import RequestMetrics
from opmap_client.core.settings import SettingsStore

BASE_URI = "https://example.test"
TEST_TOKEN = "test-token-1234567890"

OPERATIONS = {
    "basePath": "/api/now",
    "operations": {
        "Change.Get": {
            "path": "/table/change_request/{sys_id}",
            "method": "GET",
            "auth": "Bearer",
            "query": {"sysparm_display_value": "true"},
        },
        "Change.List": {"path": "/table/change_request", "method": "GET", "auth": "Bearer"},
        "Change.Recent": {
            "path": "/table/change_request",
            "method": "GET",
            "query": {"sysparm_limit": "10", "sysparm_query": "ORDERBYDESCsys_created_on"},
        },
        "Change.Create": {
            "path": "/table/change_request",
            "method": "POST",
            "auth": "Bearer",
            "body": {"short_description": "{short_description}", "type": "{type}"},
        },
        "Change.Update": {
            "path": "/table/change_request/{sys_id}",
            "method": "PATCH",
            "auth": "Bearer",
            "body": {"state": "{state}", "work_notes": "{work_notes}"},
        },
        "Public.Ping": {"path": "/ping", "method": "GET"},
        "Search": {
            "path": "/search",
            "method": "GET",
            "query": {"q": "{term}", "fields": "{fields}"},
        },
    },
}


class FakeTransport:
    """Records every send() call and replays queued outcomes.

    Each outcome is either a response value or an exception instance to raise.
    When the queue runs dry the last outcome is repeated.
    """

    def __init__(self, *outcomes: Any):
        self.outcomes = list(outcomes) or [{"result": {}}]
        self.calls: list[dict[str, Any]] = []
        self.closed = False

    def send(self, method, uri, headers, body=None, timeout=None, expect_status=None):
        self.calls.append(
            {
                "method": method,
                "uri": uri,
                "headers": dict(headers),
                "body": body,
                "timeout": timeout,
                "expect_status": expect_status,
            }
        )
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    def close(self):
        self.closed = True


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Isolate tests from the developer's environment, .env files and settings"""
    for name in ("OPMAP_TOKEN", "OPMAP_CONFIG_FILE", "OPMAP_OPERATIONS_FILE", "LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    work_dir = tmp_path / "cwd"
    work_dir.mkdir()
    monkeypatch.chdir(work_dir)
    return work_dir


@pytest.fixture(autouse=True)
def restore_root_logging():
    """Undo handler and level changes made by setup_logging()"""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers[:]:
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)


@pytest.fixture
def operations_file(tmp_path):
    """Write the test operations map to a temporary file"""
    path = tmp_path / "operations.json"
    path.write_text(json.dumps(OPERATIONS))
    return path


@pytest.fixture
def registry(operations_file):
    return OperationRegistry(operations_file)


@pytest.fixture
def settings_file(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"InstanceBaseUri": BASE_URI + "/"}))
    return path


@pytest.fixture
def settings(settings_file):
    return SettingsStore(settings_file)


@pytest.fixture
def token_env(monkeypatch):
    monkeypatch.setenv("OPMAP_TOKEN", TEST_TOKEN)
    return TEST_TOKEN


@pytest.fixture
def token_provider(settings):
    """Token provider without a secret store"""
    return TokenProvider(settings=settings, secret_store=None)


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def metrics():
    return RequestMetrics()


@pytest.fixture
def dispatcher(registry, settings, token_provider, transport, metrics, token_env):
    return OperationDispatcher(
        registry=registry,
        settings=settings,
        token_provider=token_provider,
        transport=transport,
        metrics=metrics,
        logger=logging.getLogger("opmap_client.tests"),
    )
