"""Tests for URI, header and body construction"""
import pytest

from opmap_client.api.request import RequestBuilder, encode_query
from opmap_client.core.config import CallOptions
from opmap_client.core.exceptions import ConfigurationError, TokenNotFoundError
from opmap_client.core.settings import SettingsStore

from conftest import BASE_URI, TEST_TOKEN


@pytest.fixture
def builder(settings, token_provider):
    return RequestBuilder(settings, token_provider)


def build(builder, registry, key, params=None, options=None):
    return builder.build_uri(registry.resolve(key), params, options, base_path=registry.base_path)


class TestBuildUri:
    """Test URI composition"""

    def test_full_uri(self, builder, registry):
        uri = build(builder, registry, "Change.Get", {"sys_id": "abc123"})
        assert uri == f"{BASE_URI}/api/now/table/change_request/abc123?sysparm_display_value=true"

    def test_trailing_slash_on_base_uri_stripped(self, builder, registry):
        assert "//api" not in build(builder, registry, "Public.Ping")

    def test_no_question_mark_for_empty_query(self, builder, registry):
        assert build(builder, registry, "Public.Ping") == f"{BASE_URI}/api/now/ping"

    def test_missing_base_uri(self, tmp_path, token_provider, registry):
        builder = RequestBuilder(SettingsStore(tmp_path / "empty.json"), token_provider)
        with pytest.raises(ConfigurationError) as exc_info:
            build(builder, registry, "Public.Ping")
        assert exc_info.value.field == "InstanceBaseUri"
        assert "InstanceBaseUri" in str(exc_info.value)

    def test_default_limit_applied(self, builder, registry, settings):
        settings.set("Defaults.sysparm_limit", 50)
        assert build(builder, registry, "Public.Ping").endswith("/ping?sysparm_limit=50")

    def test_default_limit_after_map_query(self, builder, registry, settings):
        settings.set("Defaults.sysparm_limit", 50)
        uri = build(builder, registry, "Change.Get", {"sys_id": "1"})
        assert uri.endswith("?sysparm_display_value=true&sysparm_limit=50")

    def test_option_limit_overrides_default(self, builder, registry, settings):
        settings.set("Defaults.sysparm_limit", 50)
        uri = build(builder, registry, "Public.Ping", options=CallOptions(query={"sysparm_limit": 5}))
        assert uri.endswith("?sysparm_limit=5")

    def test_option_query_wins_over_map_query(self, builder, registry):
        options = CallOptions(query={"sysparm_display_value": False})
        uri = build(builder, registry, "Change.Get", {"sys_id": "1"}, options)
        assert uri.endswith("?sysparm_display_value=false")

    def test_map_limit_suppresses_default_limit(self, builder, registry, settings):
        settings.set("Defaults.sysparm_limit", 50)
        uri = build(builder, registry, "Change.Recent")
        assert uri.endswith("?sysparm_limit=10&sysparm_query=ORDERBYDESCsys_created_on")
        assert "50" not in uri

    def test_option_limit_wins_over_map_limit(self, builder, registry, settings):
        settings.set("Defaults.sysparm_limit", 50)
        uri = build(builder, registry, "Change.Recent", options=CallOptions(query={"sysparm_limit": 25}))
        assert uri.endswith("?sysparm_limit=25&sysparm_query=ORDERBYDESCsys_created_on")

    def test_none_option_suppresses_default_limit(self, builder, registry, settings):
        settings.set("Defaults.sysparm_limit", 50)
        uri = build(builder, registry, "Public.Ping", options=CallOptions(query={"sysparm_limit": None}))
        assert uri == f"{BASE_URI}/api/now/ping"

    def test_percent_encoding(self, builder, registry):
        uri = build(builder, registry, "Search", {"term": "a b&c=d", "fields": "x,y"})
        assert uri.endswith("/search?q=a%20b%26c%3Dd&fields=x%2Cy")

    def test_unresolved_query_placeholder_sent_literally(self, builder, registry):
        uri = build(builder, registry, "Search", {"term": "x"})
        assert uri.endswith("?q=x&fields=%7Bfields%7D")

    def test_placeholder_bound_to_none_drops_key(self, builder, registry):
        uri = build(builder, registry, "Search", {"term": "x", "fields": None})
        assert uri.endswith("/search?q=x")

    def test_unresolved_path_placeholder_kept(self, builder, registry):
        assert build(builder, registry, "Change.Get").startswith(f"{BASE_URI}/api/now/table/change_request/{{sys_id}}")


class TestBuildBody:
    """Test body construction"""

    def test_no_body(self, builder, registry):
        assert builder.build_body(registry.resolve("Change.Get"), {"sys_id": "1"}) is None

    def test_substituted_body(self, builder, registry):
        body = builder.build_body(registry.resolve("Change.Create"), {"short_description": "Patch", "type": "normal"})
        assert body == {"short_description": "Patch", "type": "normal"}

    def test_missing_work_notes_kept_literal(self, builder, registry):
        body = builder.build_body(registry.resolve("Change.Update"), {"sys_id": "1", "state": "3"})
        assert body == {"state": "3", "work_notes": "{work_notes}"}


class TestBuildHeaders:
    """Test header construction"""

    def test_bearer_auth(self, builder, registry, token_env):
        headers = builder.build_headers(registry.resolve("Change.Get"))
        assert headers == {"Accept": "application/json", "Authorization": f"Bearer {TEST_TOKEN}"}

    def test_no_auth(self, builder, registry):
        assert builder.build_headers(registry.resolve("Public.Ping")) == {"Accept": "application/json"}

    def test_option_headers_win(self, builder, registry, token_env):
        options = CallOptions(headers={"Accept": "text/csv", "X-Trace": "1"})
        headers = builder.build_headers(registry.resolve("Change.Get"), options)
        assert headers["Accept"] == "text/csv"
        assert headers["X-Trace"] == "1"
        assert headers["Authorization"] == f"Bearer {TEST_TOKEN}"

    def test_missing_token_propagates(self, builder, registry):
        with pytest.raises(TokenNotFoundError):
            builder.build_headers(registry.resolve("Change.Get"))


class TestEncodeQuery:
    """Test query string encoding"""

    def test_skips_none(self):
        assert encode_query({"a": 1, "b": None, "c": "x"}) == "a=1&c=x"

    def test_booleans(self):
        assert encode_query({"a": True, "b": False}) == "a=true&b=false"

    def test_empty(self):
        assert encode_query({}) == ""
