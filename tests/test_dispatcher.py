"""Tests for the operation dispatcher"""
import logging
from unittest.mock import patch

import pytest

from opmap_client.api import dispatcher as dispatcher_module
from opmap_client.api.dispatcher import OperationDispatcher, invoke
from opmap_client.core.config import CallOptions
from opmap_client.core.credentials import TokenProvider
from opmap_client.core.exceptions import (
    ConfigurationError,
    OperationNotFoundError,
    TokenNotFoundError,
    TransportError,
)
from opmap_client.core.settings import SettingsStore

from conftest import BASE_URI, TEST_TOKEN, FakeTransport


class TestInvoke:
    """Test the happy path"""

    def test_returns_raw_response(self, dispatcher, transport):
        transport.outcomes = [{"result": {"sys_id": "abc"}}]
        assert dispatcher.invoke("Change.Get", {"sys_id": "abc"}) == {"result": {"sys_id": "abc"}}

    def test_transport_arguments(self, dispatcher, transport):
        dispatcher.invoke("Change.Get", {"sys_id": "abc"})
        call = transport.calls[0]
        assert call["method"] == "GET"
        assert call["uri"] == f"{BASE_URI}/api/now/table/change_request/abc?sysparm_display_value=true"
        assert call["headers"]["Authorization"] == f"Bearer {TEST_TOKEN}"
        assert call["body"] is None
        assert call["timeout"] == 60.0
        assert call["expect_status"] is None

    def test_body_with_missing_work_notes_sent_literally(self, dispatcher, transport):
        dispatcher.invoke("Change.Update", {"sys_id": "abc", "state": "3"})
        call = transport.calls[0]
        assert call["method"] == "PATCH"
        assert call["body"] == {"state": "3", "work_notes": "{work_notes}"}

    def test_unresolved_placeholders_logged_at_debug(self, dispatcher, caplog):
        with caplog.at_level(logging.DEBUG, logger="opmap_client.tests"):
            dispatcher.invoke("Change.Update", {"sys_id": "abc", "state": "3"})
        assert "unresolved placeholders" in caplog.text
        assert "work_notes" in caplog.text

    def test_options_mapping_accepted(self, dispatcher, transport):
        options = {"Headers": {"X-Trace": "t1"}, "Query": {"sysparm_fields": "number"}, "TimeoutSec": 5, "ExpectStatus": 200}
        dispatcher.invoke("Change.Get", {"sys_id": "abc"}, options)
        call = transport.calls[0]
        assert call["headers"]["X-Trace"] == "t1"
        assert call["uri"].endswith("sysparm_display_value=true&sysparm_fields=number")
        assert call["timeout"] == 5
        assert call["expect_status"] == 200

    def test_unknown_option_rejected(self, dispatcher, transport):
        with pytest.raises(ValueError, match="Retries"):
            dispatcher.invoke("Change.Get", {"sys_id": "abc"}, {"Retries": 2})
        assert transport.calls == []

    def test_timeout_from_settings(self, dispatcher, transport, settings):
        settings.set("Defaults.TimeoutSec", 12)
        dispatcher.invoke("Public.Ping")
        assert transport.calls[0]["timeout"] == 12.0

    def test_no_auth_operation_needs_no_token(self, registry, settings, transport, metrics):
        dispatcher = OperationDispatcher(
            registry=registry,
            settings=settings,
            token_provider=TokenProvider(settings=settings),
            transport=transport,
            metrics=metrics,
        )
        dispatcher.invoke("Public.Ping")
        assert "Authorization" not in transport.calls[0]["headers"]

    def test_metrics_recorded_on_success(self, dispatcher, metrics):
        dispatcher.invoke("Change.Get", {"sys_id": "abc"})
        snapshot = metrics.snapshot()
        assert snapshot["request_count"] == 1
        assert snapshot["per_operation"]["Change.Get"]["success"] == 1
        assert snapshot["per_operation"]["Change.Get"]["error"] == 0

    def test_one_log_entry_per_attempt(self, dispatcher, transport, caplog):
        transport.outcomes = [TransportError("busy", status_code=503), {"result": {}}]
        with patch("time.sleep"), caplog.at_level(logging.INFO, logger="opmap_client.tests"):
            dispatcher.invoke("Change.Get", {"sys_id": "abc"})
        attempts = [record for record in caplog.records if getattr(record, "action", None) == "Change.Get"]
        assert [record.attempt for record in attempts] == [1, 2]
        assert [record.status for record in attempts] == ["Error", "Success"]
        assert all(record.method == "GET" for record in attempts)
        assert all(record.uri.startswith(BASE_URI) for record in attempts)
        assert all(record.duration_ms >= 0 for record in attempts)


class TestFailures:
    """Test lookup, build and transport failures"""

    def test_unknown_operation_not_retried(self, dispatcher, transport, metrics):
        with patch("time.sleep") as mock_sleep:
            with pytest.raises(OperationNotFoundError):
                dispatcher.invoke("Change.Nope")
        assert transport.calls == []
        mock_sleep.assert_not_called()
        assert metrics.snapshot()["request_count"] == 0

    def test_missing_base_uri(self, registry, tmp_path, token_env, transport, metrics):
        settings = SettingsStore(tmp_path / "none.json")
        dispatcher = OperationDispatcher(
            registry=registry, settings=settings, token_provider=TokenProvider(settings=settings),
            transport=transport, metrics=metrics,
        )
        with pytest.raises(ConfigurationError):
            dispatcher.invoke("Change.Get", {"sys_id": "abc"})
        assert transport.calls == []

    def test_missing_token(self, registry, settings, transport, metrics):
        dispatcher = OperationDispatcher(
            registry=registry, settings=settings, token_provider=TokenProvider(settings=settings),
            transport=transport, metrics=metrics,
        )
        with pytest.raises(TokenNotFoundError):
            dispatcher.invoke("Change.Get", {"sys_id": "abc"})
        assert transport.calls == []

    def test_transient_failures_then_success(self, dispatcher, transport, metrics):
        transport.outcomes = [TransportError("a", status_code=503), TransportError("b", status_code=502), {"ok": True}]
        with patch("time.sleep") as mock_sleep:
            assert dispatcher.invoke("Change.Get", {"sys_id": "abc"}) == {"ok": True}
        assert [call.args[0] for call in mock_sleep.call_args_list] == [2.0, 4.0]
        entry = metrics.snapshot()["per_operation"]["Change.Get"]
        assert entry == {"count": 3, "total_duration_ms": entry["total_duration_ms"], "success": 1, "error": 2}

    def test_exhausted_retries_reraise_original(self, dispatcher, transport, metrics):
        error = TransportError("down", status_code=500)
        transport.outcomes = [error]
        with patch("time.sleep"):
            with pytest.raises(TransportError) as exc_info:
                dispatcher.invoke("Change.Get", {"sys_id": "abc"}, CallOptions(retry_count=2, retry_delay_sec=0.1))
        assert exc_info.value is error
        assert len(transport.calls) == 3
        assert metrics.snapshot()["per_operation"]["Change.Get"]["error"] == 3

    def test_retry_count_from_settings(self, dispatcher, transport, settings):
        settings.set("Defaults.RetryCount", 1)
        transport.outcomes = [TransportError("down", status_code=500)]
        with patch("time.sleep"):
            with pytest.raises(TransportError):
                dispatcher.invoke("Public.Ping")
        assert len(transport.calls) == 2

    def test_retry_status_codes_narrow_retries(self, dispatcher, transport, settings):
        settings.set("Defaults.RetryStatusCodes", [429, 503])
        transport.outcomes = [TransportError("bad", status_code=400)]
        with patch("time.sleep") as mock_sleep:
            with pytest.raises(TransportError):
                dispatcher.invoke("Public.Ping")
        assert len(transport.calls) == 1
        mock_sleep.assert_not_called()


class TestLifecycle:
    """Test defaults and resource handling"""

    def test_context_manager_closes_owned_transport(self, registry, settings, token_provider, metrics):
        fake = FakeTransport()
        with patch.object(dispatcher_module, "HttpxTransport", return_value=fake):
            with OperationDispatcher(registry=registry, settings=settings, token_provider=token_provider, metrics=metrics):
                pass
        assert fake.closed

    def test_injected_transport_left_open(self, dispatcher, transport):
        with dispatcher:
            pass
        assert not transport.closed

    def test_module_level_invoke_uses_default_dispatcher(self, monkeypatch, dispatcher, transport):
        monkeypatch.setattr(dispatcher_module, "_default_dispatcher", dispatcher)
        invoke("Change.Get", {"sys_id": "xyz"})
        assert transport.calls[0]["uri"].startswith(f"{BASE_URI}/api/now/table/change_request/xyz")
