"""Turn any provider result shape into one canonical per-target summary."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Mapping
from typing import Any

from relay.dispatch.contracts import Batch, BatchSummary, CountedResult, DispatchOutcome, OpaqueResult, ProviderResult, ResponsesOnlyResult, TargetReport

logger = logging.getLogger(__name__)

MASK_PREFIX_CHARS = 8
MASK_SUFFIX_CHARS = 6
MASK_THRESHOLD = MASK_PREFIX_CHARS + MASK_SUFFIX_CHARS
NO_TARGET_INFO = "no per-target info"


def mask_identifier(value: Any) -> str:
  """Render an identifier with its middle redacted, safe for logs and responses."""
  text = str(value)
  if len(text) <= MASK_THRESHOLD:
    return text
  return f"{text[:MASK_PREFIX_CHARS]}...{text[-MASK_SUFFIX_CHARS:]}"


def extract_error_message(error: Any) -> str | None:
  """Pull a readable message out of whatever the provider attached to a target."""
  if error is None:
    return None

  if isinstance(error, str):
    return error

  if isinstance(error, Mapping):
    for key in ("message", "code"):
      if error.get(key):
        return str(error[key])
    return json.dumps(error, default=str, sort_keys=True)

  # Provider exceptions carry the human message in str() and a machine code attribute.
  if isinstance(error, BaseException):
    message = str(error)
    if message:
      return message
    code = getattr(error, "code", None)
    return str(code) if code else type(error).__name__

  for attribute in ("message", "code"):
    candidate = getattr(error, attribute, None)
    if candidate:
      return str(candidate)

  try:
    return json.dumps(error, default=str)
  except (TypeError, ValueError):
    return repr(error)


def normalize(result: ProviderResult, batch: Batch, original_index: Callable[[int], int], mask_fn: Callable[[Any], str] = mask_identifier) -> BatchSummary:
  """Build the batch summary, re-attaching cleaned and original indices to every target."""
  # No per-target data at all: every target is unknown and neither count moves.
  if isinstance(result, OpaqueResult):
    details = tuple(_unknown_report(batch, idx, original_index, mask_fn) for idx in range(len(batch)))
    return BatchSummary(batch_size=len(batch), success_count=0, failure_count=0, details=details)

  responses = result.responses
  if len(responses) > len(batch):
    logger.warning("Provider returned more responses than targets batch_size=%d responses=%d; extra responses ignored", len(batch), len(responses))
    responses = responses[: len(batch)]

  details_list = [_target_report(outcome, batch, idx, original_index, mask_fn) for idx, outcome in enumerate(responses)]
  # Targets the provider said nothing about are reported as unknown rather than dropped.
  details_list.extend(_unknown_report(batch, idx, original_index, mask_fn) for idx in range(len(responses), len(batch)))

  # Trust provider counts when present; otherwise derive them from the responses seen.
  if isinstance(result, CountedResult):
    success_count = result.success_count
    failure_count = result.failure_count
  elif isinstance(result, ResponsesOnlyResult):
    success_count = sum(1 for outcome in responses if outcome.success)
    failure_count = len(responses) - success_count
  else:
    raise TypeError(f"Unsupported provider result type: {type(result).__name__}")

  return BatchSummary(batch_size=len(batch), success_count=success_count, failure_count=failure_count, details=tuple(details_list))


def _target_report(outcome: DispatchOutcome, batch: Batch, idx: int, original_index: Callable[[int], int], mask_fn: Callable[[Any], str]) -> TargetReport:
  """Report one provider outcome at batch position `idx`, with both indices and a masked snippet."""
  cleaned_index = batch.start_offset + idx
  return TargetReport(
    success=bool(outcome.success),
    error=extract_error_message(outcome.error),
    index_in_batch=idx,
    cleaned_index=cleaned_index,
    original_index=original_index(cleaned_index),
    identifier_snippet=mask_fn(batch.members[idx]),
  )


def _unknown_report(batch: Batch, idx: int, original_index: Callable[[int], int], mask_fn: Callable[[Any], str]) -> TargetReport:
  """Report a target the provider gave no outcome for."""
  cleaned_index = batch.start_offset + idx
  return TargetReport(success=None, error=NO_TARGET_INFO, index_in_batch=idx, cleaned_index=cleaned_index, original_index=original_index(cleaned_index), identifier_snippet=mask_fn(batch.members[idx]))
