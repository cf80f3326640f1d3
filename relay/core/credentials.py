"""Load and validate the service-account bundle used to sign provider calls.

The bundle arrives through the environment either as raw JSON
(`SERVICE_ACCOUNT_KEY`) or base64-encoded JSON (`SERVICE_ACCOUNT_KEY_B64`, which
wins when both are set). It is validated once at startup and then handed around
as an immutable value; nothing reads it from the environment afterwards.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import os
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from relay.config import Settings

PEM_MARKER = "BEGIN PRIVATE KEY"
KEY_PREVIEW_CHARS = 40
_DIAGNOSTIC_ENV_KEYS = ("HTTP_PROXY", "HTTPS_PROXY", "FIREBASE_EMULATOR_HOST")


class CredentialError(RuntimeError):
  """Raised when the service-account bundle is missing or unusable."""


@dataclass(frozen=True)
class ServiceAccountBundle:
  """Validated service-account fields with a normalized PEM private key."""

  info: MappingProxyType = field(repr=False)
  source: str

  @property
  def project_id(self) -> str | None:
    return self.info.get("project_id")

  @property
  def private_key(self) -> str:
    return self.info["private_key"]

  def as_dict(self) -> dict[str, Any]:
    """Return a mutable copy for SDKs that expect a plain dict."""
    return dict(self.info)

  def key_preview(self) -> str:
    """Return the escaped head of the private key for startup logs."""
    return self.private_key[:KEY_PREVIEW_CHARS].replace("\n", "\\n")


def _decode_raw(settings: Settings) -> tuple[str, str]:
  if settings.service_account_key_b64:
    try:
      decoded = base64.b64decode(settings.service_account_key_b64, validate=False).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as exc:
      raise CredentialError(f"SERVICE_ACCOUNT_KEY_B64 is not valid base64 UTF-8: {exc}") from exc
    return decoded, "SERVICE_ACCOUNT_KEY_B64"

  if settings.service_account_key:
    return settings.service_account_key, "SERVICE_ACCOUNT_KEY"

  raise CredentialError("Missing env: set SERVICE_ACCOUNT_KEY (raw JSON) or SERVICE_ACCOUNT_KEY_B64 (base64 JSON)")


def load_service_account(settings: Settings) -> ServiceAccountBundle:
  """Parse and validate the service-account bundle described by settings."""
  raw, source = _decode_raw(settings)

  try:
    parsed = json.loads(raw)
  except json.JSONDecodeError as exc:
    raise CredentialError(f"Failed to parse service account JSON from {source}: {exc.msg}") from exc

  if not isinstance(parsed, dict):
    raise CredentialError(f"Service account JSON from {source} must be an object.")

  private_key = parsed.get("private_key")
  if not private_key:
    raise CredentialError("Service account JSON missing private_key")

  if not isinstance(private_key, str):
    raise CredentialError("Service account private_key must be a string.")

  # Keys pasted into env vars usually carry literal backslash-n sequences.
  private_key = private_key.replace("\\n", "\n")
  if PEM_MARKER not in private_key:
    raise CredentialError("private_key doesn't contain BEGIN marker; PEM invalid")

  parsed["private_key"] = private_key
  return ServiceAccountBundle(info=MappingProxyType(parsed), source=source)


def log_credential_summary(bundle: ServiceAccountBundle, *, logger: logging.Logger) -> None:
  """Log non-secret credential facts and proxy settings for startup debugging."""
  logger.info("Loaded service account from %s", bundle.source)
  logger.info("private_key preview (escaped): %s", bundle.key_preview())
  logger.info("project_id: %s", bundle.project_id)
  for key in _DIAGNOSTIC_ENV_KEYS:
    logger.info("%s: %s", key, os.getenv(key))
