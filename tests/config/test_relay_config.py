"""Unit tests for loginrelay.config.relay_config -- loading and validation."""

from __future__ import annotations

import json
import logging
from dataclasses import replace

import pytest

from loginrelay.config import ConfigValidationError, load_settings, validate_settings
from loginrelay.config.relay_config import read_config_file


@pytest.fixture()
def env(config_data) -> dict:
    """The same configuration expressed purely as environment variables."""
    return {
        "PRIVATE_KEY": config_data["identity"]["private_key"],
        "SIGNING_IADDRESS": config_data["identity"]["signing_id"],
        "CHAIN_IADDRESS": config_data["identity"]["chain_id"],
        "SERVER_URL": "https://login.example.com",
    }


class TestLoadFromEnvironment:
    def test_env_only(self, env):
        s = load_settings(environ=env)
        assert s.server.external_url == "https://login.example.com"
        assert s.identity.signing_id == env["SIGNING_IADDRESS"]

    def test_well_known_variables(self, env):
        env.update(
            {
                "LOGIN_PORT": "8123",
                "PLATFORM_INTERNAL_URL": "http://platform:4000",
                "CHAIN": "VRSCTEST",
                "API": "https://api.example.com",
                "CHALLENGE_TTL_SECONDS": "120",
                "LOG_LEVEL": "debug",
            },
        )
        s = load_settings(environ=env)
        assert s.server.port == 8123
        assert s.platform.internal_url == "http://platform:4000"
        assert s.identity.chain == "VRSCTEST"
        assert s.identity.api_url == "https://api.example.com"
        assert s.challenges.ttl_seconds == 120
        assert s.logging.level == "DEBUG"

    def test_empty_env_values_ignored(self, env):
        env["LOGIN_PORT"] = ""
        assert load_settings(environ=env).server.port == 8000

    def test_missing_required_values_reported_together(self):
        with pytest.raises(ConfigValidationError) as exc_info:
            load_settings(environ={})
        text = "\n".join(exc_info.value.errors)
        assert "server.external_url" in text
        assert "identity.private_key" in text
        assert "identity.signing_id" in text
        assert "identity.chain_id" in text


class TestLoadFromFile:
    def test_yaml_file(self, tmp_config_file):
        s = load_settings(tmp_config_file, environ={})
        assert s.platform.internal_url == "http://platform.internal:3000"

    def test_json_file(self, tmp_path, config_data):
        path = tmp_path / "relay.json"
        path.write_text(json.dumps(config_data), encoding="utf-8")
        assert load_settings(path, environ={}).server.external_url == "https://login.example.com"

    def test_env_overrides_file(self, tmp_config_file):
        s = load_settings(tmp_config_file, environ={"LOGIN_PORT": "9999"})
        assert s.server.port == 9999

    def test_placeholder_resolution(self, tmp_path, config_data):
        config_data["platform"]["internal_url"] = "${PLATFORM_URL:-http://fallback:1}"
        config_data["server"]["cors_origin"] = "${ORIGIN}"
        path = tmp_path / "relay.json"
        path.write_text(json.dumps(config_data), encoding="utf-8")

        s = load_settings(path, environ={"ORIGIN": "https://app.example.com"})
        assert s.platform.internal_url == "http://fallback:1"
        assert s.server.cors_origin == "https://app.example.com"

    def test_unresolved_placeholder(self, tmp_path, config_data):
        config_data["server"]["cors_origin"] = "${NOPE}"
        path = tmp_path / "relay.json"
        path.write_text(json.dumps(config_data), encoding="utf-8")
        with pytest.raises(ConfigValidationError, match="NOPE"):
            load_settings(path, environ={})

    def test_unreadable_file(self, tmp_path):
        with pytest.raises(ConfigValidationError, match="Cannot read"):
            read_config_file(tmp_path / "missing.yaml")

    def test_top_level_must_be_mapping(self, tmp_path):
        path = tmp_path / "relay.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ConfigValidationError, match="mapping"):
            read_config_file(path)

    def test_empty_yaml(self, tmp_path):
        path = tmp_path / "relay.yaml"
        path.write_text("", encoding="utf-8")
        assert read_config_file(path) == {}

    def test_bad_value_wrapped(self, tmp_config_file):
        with pytest.raises(ConfigValidationError, match="Invalid configuration value"):
            load_settings(tmp_config_file, environ={"LOGIN_PORT": "eighty"})


class TestValidateSettings:
    def test_valid(self, settings):
        assert validate_settings(settings) == []

    def test_multiple_workers_rejected(self, settings):
        bad = replace(settings, server=replace(settings.server, workers=4))
        with pytest.raises(ConfigValidationError, match="server.workers must be 1"):
            validate_settings(bad)

    @pytest.mark.parametrize(
        ("url", "message"),
        [
            ("login.example.com", "http\\(s\\) URL"),
            ("https://login.example.com/", "must not end with"),
        ],
    )
    def test_external_url(self, settings, url, message):
        bad = replace(settings, server=replace(settings.server, external_url=url))
        with pytest.raises(ConfigValidationError, match=message):
            validate_settings(bad)

    def test_plain_http_is_a_warning(self, settings, caplog):
        ok = replace(settings, server=replace(settings.server, external_url="http://localhost"))
        with caplog.at_level(logging.WARNING):
            warnings = validate_settings(ok)
        assert any("plain http" in w for w in warnings)

    def test_short_private_key(self, settings):
        bad = replace(settings, identity=replace(settings.identity, private_key="abcd"))
        with pytest.raises(ConfigValidationError, match="64 hex characters"):
            validate_settings(bad)

    def test_external_backend_needs_no_key(self, settings):
        ext = replace(
            settings,
            identity=replace(settings.identity, backend="ext:pkg.mod.Adapter", private_key=None),
        )
        assert validate_settings(ext) == []

    def test_unknown_backend(self, settings):
        bad = replace(settings, identity=replace(settings.identity, backend="hsm"))
        with pytest.raises(ConfigValidationError, match="unknown"):
            validate_settings(bad)

    def test_short_challenge_ids(self, settings):
        bad = replace(settings, challenges=replace(settings.challenges, id_length_bytes=8))
        with pytest.raises(ConfigValidationError, match="id_length_bytes"):
            validate_settings(bad)

    def test_non_positive_ttl(self, settings):
        bad = replace(settings, challenges=replace(settings.challenges, ttl_seconds=0))
        with pytest.raises(ConfigValidationError, match="ttl_seconds"):
            validate_settings(bad)

    def test_callback_path_must_be_absolute(self, settings):
        bad = replace(
            settings,
            verification=replace(settings.verification, callback_path="verusidlogin"),
        )
        with pytest.raises(ConfigValidationError, match="callback_path"):
            validate_settings(bad)

    def test_disabled_failure_cap_warns(self, settings):
        relaxed = replace(
            settings,
            verification=replace(settings.verification, max_failed_attempts=0),
        )
        assert any("max_failed_attempts" in w for w in validate_settings(relaxed))

    def test_platform_url(self, settings):
        bad = replace(settings, platform=replace(settings.platform, internal_url="platform:3000"))
        with pytest.raises(ConfigValidationError, match="platform.internal_url"):
            validate_settings(bad)

    def test_log_format(self, settings):
        bad = replace(settings, logging=replace(settings.logging, format="xml"))
        with pytest.raises(ConfigValidationError, match="logging.format"):
            validate_settings(bad)
