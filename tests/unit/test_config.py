from __future__ import annotations

import logging
import os

import pytest

from relay.config import get_settings
from relay.core.env_contract import EnvContractError, validate_env_values, validate_runtime_env_or_raise
from relay.utils.env import load_env_file


@pytest.fixture
def fresh_settings(monkeypatch):
  for name in ("PORT", "RELAY_MAX_BATCH_SIZE", "RELAY_DISPATCH_STRATEGY", "RELAY_REMOVED_SAMPLE_SIZE", "RELAY_MAX_BODY_BYTES"):
    monkeypatch.delenv(name, raising=False)
  get_settings.cache_clear()
  yield monkeypatch
  get_settings.cache_clear()


def test_defaults(fresh_settings):
  settings = get_settings()

  assert settings.port == 5000
  assert settings.max_batch_size == 500
  assert settings.removed_sample_size == 20
  assert settings.dispatch_strategy == "auto"
  assert settings.max_body_bytes == 2_097_152


def test_port_and_batch_size_overrides(fresh_settings):
  fresh_settings.setenv("PORT", "8080")
  fresh_settings.setenv("RELAY_MAX_BATCH_SIZE", "100")

  settings = get_settings()

  assert settings.port == 8080
  assert settings.max_batch_size == 100


@pytest.mark.parametrize(("name", "value"), [("RELAY_MAX_BATCH_SIZE", "501"), ("RELAY_MAX_BATCH_SIZE", "0"), ("PORT", "-1"), ("RELAY_DISPATCH_STRATEGY", "parallel"), ("RELAY_MAX_BODY_BYTES", "0")])
def test_invalid_values_raise(fresh_settings, name, value):
  fresh_settings.setenv(name, value)

  with pytest.raises(ValueError):
    get_settings()


def test_env_contract_requires_one_credential_form():
  errors = validate_env_values({"PORT": "5000"})

  assert errors == ["SERVICE_ACCOUNT_KEY or SERVICE_ACCOUNT_KEY_B64: one of them must be set."]
  assert validate_env_values({"SERVICE_ACCOUNT_KEY_B64": "e30="}) == []


def test_env_contract_reports_invalid_values():
  errors = validate_env_values({"SERVICE_ACCOUNT_KEY": "{}", "PORT": "http", "RELAY_MAX_BATCH_SIZE": "1000", "RELAY_DISPATCH_STRATEGY": "fast"})

  assert errors == ["PORT: must be an integer.", "RELAY_MAX_BATCH_SIZE: must be between 1 and 500.", "RELAY_DISPATCH_STRATEGY: must be one of: auto, bulk_multi, bulk_array, sequential."]


def test_env_file_loader_keeps_existing_values(tmp_path, monkeypatch):
  env_file = tmp_path / ".env"
  env_file.write_text('# comment\nexport RELAY_TEST_A="quoted"\nRELAY_TEST_B={"a": "b=c"}\nRELAY_TEST_C=from-file\n', encoding="utf-8")
  monkeypatch.setenv("RELAY_TEST_C", "from-env")
  monkeypatch.delenv("RELAY_TEST_A", raising=False)
  monkeypatch.delenv("RELAY_TEST_B", raising=False)

  load_env_file(env_file)

  assert os.environ["RELAY_TEST_A"] == "quoted"
  assert os.environ["RELAY_TEST_B"] == '{"a": "b=c"}'
  assert os.environ["RELAY_TEST_C"] == "from-env"
  monkeypatch.delenv("RELAY_TEST_A")
  monkeypatch.delenv("RELAY_TEST_B")


def test_runtime_contract_enforcement_can_be_disabled(monkeypatch, caplog):
  for name in ("SERVICE_ACCOUNT_KEY", "SERVICE_ACCOUNT_KEY_B64", "PORT", "RELAY_ENV_CONTRACT_ENFORCE"):
    monkeypatch.delenv(name, raising=False)
  logger = logging.getLogger("relay.test.env_contract")

  with pytest.raises(EnvContractError):
    validate_runtime_env_or_raise(logger=logger)

  monkeypatch.setenv("RELAY_ENV_CONTRACT_ENFORCE", "0")
  monkeypatch.setenv("SERVICE_ACCOUNT_KEY_B64", "c2VjcmV0")
  monkeypatch.setenv("PORT", "http")
  with caplog.at_level(logging.INFO, logger="relay.test.env_contract"):
    validate_runtime_env_or_raise(logger=logger)

  assert "ENV_CHECK key=SERVICE_ACCOUNT_KEY_B64 value=<redacted>" in caplog.text
  assert "c2VjcmV0" not in caplog.text
  assert "PORT: must be an integer." in caplog.text
