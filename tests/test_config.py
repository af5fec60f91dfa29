"""Tests for configuration loading."""

from __future__ import annotations

import pytest

from support_relay.config import DEFAULT_SYSTEM_PROMPT, load_config


def test_env_vars_and_data_dir_interpolated(tmp_path, monkeypatch):
    monkeypatch.setenv("RELAY_TEST_TG_TOKEN", "123:abc")
    (tmp_path / ".env").write_text("RELAY_TEST_OPENAI_KEY=sk-test\n", encoding="utf-8")
    config_file = tmp_path / "config.yaml"
    config_file.write_text(
        """
data_dir: /srv/relay
storage:
  db_path: ${data_dir}/relay.db
openai:
  api_key: ${RELAY_TEST_OPENAI_KEY}
telegram:
  token: ${RELAY_TEST_TG_TOKEN}
  admin_id: "555"
  mode: webhook
matcher:
  threshold: 0.6
""",
        encoding="utf-8",
    )

    config = load_config(config_file, tmp_path / ".env")

    assert config.storage.db_path == "/srv/relay/relay.db"
    assert config.openai.api_key == "sk-test"
    assert config.telegram.token == "123:abc"
    assert config.telegram.mode == "webhook"
    assert config.matcher.threshold == 0.6


def test_defaults(tmp_path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text("", encoding="utf-8")

    config = load_config(config_file, tmp_path / "missing.env")

    assert config.server.port == 3000
    assert (config.server.rate_limit.window_seconds, config.server.rate_limit.max_requests) == (60, 30)
    assert config.matcher.threshold == 0.7
    assert config.ai.max_tokens == 150
    assert config.ai.system_prompt == DEFAULT_SYSTEM_PROMPT
    assert config.auth.code_ttl_seconds == 300
    assert config.openai is None


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nope.yaml", tmp_path / ".env")


def test_invalid_threshold(tmp_path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text("matcher:\n  threshold: 2\n", encoding="utf-8")

    with pytest.raises(ValueError):
        load_config(config_file, tmp_path / ".env")
