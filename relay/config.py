"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from relay.utils.env import default_env_path, load_env_file

load_env_file(default_env_path(), override=False)

# Upper bound enforced by the messaging provider for a single multicast call.
PROVIDER_MAX_BATCH_SIZE = 500

DISPATCH_STRATEGY_CHOICES = ("auto", "bulk_multi", "bulk_array", "sequential")


@dataclass(frozen=True)
class Settings:
  """Typed settings for the wake-up relay."""

  environment: str
  host: str
  port: int
  service_account_key: str | None
  service_account_key_b64: str | None
  max_batch_size: int
  removed_sample_size: int
  log_sample_size: int
  body_preview_chars: int
  max_body_bytes: int
  dispatch_strategy: str
  provider_timeout_seconds: float
  probe_timeout_seconds: float
  log_dir: str | None
  log_max_bytes: int
  log_backup_count: int
  log_http_bodies: bool
  log_http_body_bytes: int


def _parse_bool(raw: str | None, *, default: bool = False) -> bool:
  """Parse a boolean-ish string from environment variables."""

  if raw is None:
    return default

  normalized = raw.strip().lower()
  return normalized in {"1", "true", "yes", "on"}


def _optional_str(raw: str | None) -> str | None:
  if raw is None:
    return None
  value = raw.strip()
  if value == "":
    return None
  return value


def _positive_int(name: str, default: str) -> int:
  value = int(os.getenv(name, default))
  if value <= 0:
    raise ValueError(f"{name} must be a positive integer.")
  return value


def _positive_float(name: str, default: str) -> float:
  value = float(os.getenv(name, default))
  if value <= 0:
    raise ValueError(f"{name} must be a positive number.")
  return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
  """Load settings once per process."""

  environment = os.getenv("RELAY_ENV", "development").strip().lower()
  host = (os.getenv("RELAY_HOST") or "0.0.0.0").strip()
  port = _positive_int("PORT", "5000")

  max_batch_size = _positive_int("RELAY_MAX_BATCH_SIZE", str(PROVIDER_MAX_BATCH_SIZE))
  if max_batch_size > PROVIDER_MAX_BATCH_SIZE:
    raise ValueError(f"RELAY_MAX_BATCH_SIZE must not exceed {PROVIDER_MAX_BATCH_SIZE}.")

  removed_sample_size = _positive_int("RELAY_REMOVED_SAMPLE_SIZE", "20")
  log_sample_size = _positive_int("RELAY_LOG_SAMPLE_SIZE", "10")
  body_preview_chars = _positive_int("RELAY_BODY_PREVIEW_CHARS", "2000")
  max_body_bytes = _positive_int("RELAY_MAX_BODY_BYTES", str(2 * 1024 * 1024))  # 2MB default

  dispatch_strategy = (os.getenv("RELAY_DISPATCH_STRATEGY") or "auto").strip().lower()
  if dispatch_strategy not in DISPATCH_STRATEGY_CHOICES:
    raise ValueError(f"RELAY_DISPATCH_STRATEGY must be one of: {', '.join(DISPATCH_STRATEGY_CHOICES)}.")

  log_max_bytes = _positive_int("RELAY_LOG_MAX_BYTES", "5242880")  # 5MB default
  log_backup_count = int(os.getenv("RELAY_LOG_BACKUP_COUNT", "5"))
  if log_backup_count < 0:
    raise ValueError("RELAY_LOG_BACKUP_COUNT must be zero or a positive integer.")

  # Allow opt-in logging of HTTP request/response bodies with a size cap.
  log_http_bodies = _parse_bool(os.getenv("RELAY_LOG_HTTP_BODIES"))
  log_http_body_bytes = _positive_int("RELAY_LOG_HTTP_BODY_BYTES", "2048")

  return Settings(
    environment=environment,
    host=host,
    port=port,
    service_account_key=_optional_str(os.getenv("SERVICE_ACCOUNT_KEY")),
    service_account_key_b64=_optional_str(os.getenv("SERVICE_ACCOUNT_KEY_B64")),
    max_batch_size=max_batch_size,
    removed_sample_size=removed_sample_size,
    log_sample_size=log_sample_size,
    body_preview_chars=body_preview_chars,
    max_body_bytes=max_body_bytes,
    dispatch_strategy=dispatch_strategy,
    provider_timeout_seconds=_positive_float("RELAY_PROVIDER_TIMEOUT_SECONDS", "10"),
    probe_timeout_seconds=_positive_float("RELAY_PROBE_TIMEOUT_SECONDS", "10"),
    log_dir=_optional_str(os.getenv("RELAY_LOG_DIR")),
    log_max_bytes=log_max_bytes,
    log_backup_count=log_backup_count,
    log_http_bodies=log_http_bodies,
    log_http_body_bytes=log_http_body_bytes,
  )
