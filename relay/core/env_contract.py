"""Startup environment contract for the relay process.

How/Why:
- Keep runtime configuration explicit so deploy-time mistakes fail immediately.
- Never echo the service-account bundle into startup logs.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable, Mapping
from dataclasses import dataclass

from relay.config import DISPATCH_STRATEGY_CHOICES, PROVIDER_MAX_BATCH_SIZE

EnvValidator = Callable[[str, Mapping[str, str]], str | None]


@dataclass(frozen=True)
class EnvVarDefinition:
  """Describe how an environment variable must be validated."""

  name: str
  required: bool
  secret: bool
  validator: EnvValidator | None = None


class EnvContractError(RuntimeError):
  """Raised when required runtime environment keys are missing or invalid."""


def _int_in_range(low: int, high: int) -> EnvValidator:
  def _validate(value: str, _: Mapping[str, str]) -> str | None:
    try:
      number = int(value)
    except ValueError:
      return "must be an integer."
    if not low <= number <= high:
      return f"must be between {low} and {high}."
    return None

  return _validate


def _validate_strategy(value: str, _: Mapping[str, str]) -> str | None:
  if value.strip().lower() in DISPATCH_STRATEGY_CHOICES:
    return None
  return f"must be one of: {', '.join(DISPATCH_STRATEGY_CHOICES)}."


REQUIRED_ENV_REGISTRY: tuple[EnvVarDefinition, ...] = (
  EnvVarDefinition(name="SERVICE_ACCOUNT_KEY", required=False, secret=True),
  EnvVarDefinition(name="SERVICE_ACCOUNT_KEY_B64", required=False, secret=True),
  EnvVarDefinition(name="PORT", required=False, secret=False, validator=_int_in_range(1, 65535)),
  EnvVarDefinition(name="RELAY_ENV", required=False, secret=False),
  EnvVarDefinition(name="RELAY_MAX_BATCH_SIZE", required=False, secret=False, validator=_int_in_range(1, PROVIDER_MAX_BATCH_SIZE)),
  EnvVarDefinition(name="RELAY_DISPATCH_STRATEGY", required=False, secret=False, validator=_validate_strategy),
)

# At least one variable of each group must be set.
ONE_OF_GROUPS: tuple[tuple[str, ...], ...] = (("SERVICE_ACCOUNT_KEY", "SERVICE_ACCOUNT_KEY_B64"),)


def _enforcement_enabled() -> bool:
  raw = os.getenv("RELAY_ENV_CONTRACT_ENFORCE")
  if raw is None:
    return True
  return raw.strip().lower() in {"1", "true", "yes", "on"}


def _render_for_log(definition: EnvVarDefinition, value: str) -> str:
  if value == "":
    return "<missing>"
  return "<redacted>" if definition.secret else value


def validate_env_values(env_map: Mapping[str, str]) -> list[str]:
  """Return one message per contract violation found in env_map."""
  errors: list[str] = []
  for definition in REQUIRED_ENV_REGISTRY:
    value = env_map.get(definition.name, "").strip()
    if not value:
      if definition.required:
        errors.append(f"{definition.name}: required variable is missing.")
      continue

    problem = definition.validator(value, env_map) if definition.validator else None
    if problem:
      errors.append(f"{definition.name}: {problem}")

  for group in ONE_OF_GROUPS:
    if not any(env_map.get(name, "").strip() for name in group):
      errors.append(f"{' or '.join(group)}: one of them must be set.")

  return errors


def validate_runtime_env_or_raise(*, logger: logging.Logger) -> None:
  """Log every contract variable and fail startup on violations unless enforcement is off."""
  resolved = {definition.name: os.getenv(definition.name, "") for definition in REQUIRED_ENV_REGISTRY}
  for definition in REQUIRED_ENV_REGISTRY:
    logger.info("ENV_CHECK key=%s value=%s", definition.name, _render_for_log(definition, resolved[definition.name]))

  errors = validate_env_values(resolved)
  if not errors:
    logger.info("ENV_CHECK status=ok checked=%d", len(REQUIRED_ENV_REGISTRY))
    return

  message = "ENV_CHECK status=failed violations:\n- " + "\n- ".join(errors)
  if not _enforcement_enabled():
    logger.warning("ENV_CHECK enforcement disabled by RELAY_ENV_CONTRACT_ENFORCE=0")
    logger.warning(message)
    return

  logger.error(message)
  raise EnvContractError(message)
