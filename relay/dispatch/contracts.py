"""Value types and collaborator contracts for the wake-up dispatch pipeline."""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

WAKEUP_ACTION = "start_core_service"
WAKEUP_PRIORITY = "high"
WAKEUP_TTL_MS = 60 * 1000


class RejectionReason(str, Enum):
  """Why the sanitizer refused a caller-supplied identifier."""

  NOT_A_STRING = "NOT_A_STRING"
  EMPTY_OR_SENTINEL = "EMPTY_OR_SENTINEL"
  TOO_SHORT = "TOO_SHORT"
  DUPLICATE = "DUPLICATE"


class DispatchCapability(str, Enum):
  """Call shape a provider binding declares it can serve."""

  BULK_MULTI = "bulk_multi"
  BULK_ARRAY = "bulk_array"
  SEQUENTIAL = "sequential"


@dataclass(frozen=True)
class CleanIdentifier:
  """An identifier that survived sanitation, pinned to its input position."""

  value: str
  original_index: int


@dataclass(frozen=True)
class RejectedIdentifier:
  """An identifier the sanitizer refused, with the reason and the raw input."""

  original_index: int
  reason: RejectionReason
  raw_value: Any

  def to_payload(self) -> dict[str, Any]:
    """Serialize with the wire field names; rawValue is coerced to something JSON can hold."""
    return {"originalIndex": self.original_index, "reason": self.reason.value, "rawValue": _json_safe(self.raw_value)}


@dataclass(frozen=True)
class Batch:
  """A contiguous slice of the cleaned sequence sent in one provider call."""

  members: tuple[str, ...]
  start_offset: int

  def __len__(self) -> int:
    """Return the number of identifiers in the batch."""
    return len(self.members)


@dataclass(frozen=True)
class WakeupPayload:
  """Shared data/platform options attached to every target of a batch."""

  data: dict[str, str] = field(default_factory=lambda: {"action": WAKEUP_ACTION})
  priority: str = WAKEUP_PRIORITY
  ttl_ms: int = WAKEUP_TTL_MS

  def platform_options(self) -> dict[str, Any]:
    """Return the delivery options as plain values (ttl in milliseconds)."""
    return {"priority": self.priority, "ttl": self.ttl_ms}


@dataclass(frozen=True)
class TargetMessage:
  """One fully-formed message addressed to a single target."""

  target: str
  payload: WakeupPayload


@dataclass(frozen=True)
class DispatchOutcome:
  """Per-target provider outcome before it is re-indexed.

  `error` is left as whatever the provider produced (string, exception, mapping);
  the normalizer turns it into a message.
  """

  success: bool
  error: Any = None


@dataclass(frozen=True)
class CountedResult:
  """Provider result carrying per-target responses and explicit counts."""

  responses: tuple[DispatchOutcome, ...]
  success_count: int
  failure_count: int


@dataclass(frozen=True)
class ResponsesOnlyResult:
  """Provider result carrying per-target responses without counts."""

  responses: tuple[DispatchOutcome, ...]


@dataclass(frozen=True)
class OpaqueResult:
  """Provider result with no per-target information at all."""

  raw: Any = None


ProviderResult = CountedResult | ResponsesOnlyResult | OpaqueResult


@dataclass(frozen=True)
class TargetReport:
  """Normalized per-target outcome, mapped back to the caller's input."""

  success: bool | None
  error: str | None
  index_in_batch: int
  cleaned_index: int
  original_index: int
  identifier_snippet: str

  def to_payload(self) -> dict[str, Any]:
    """Serialize with the wire field names."""
    return {
      "success": self.success,
      "error": self.error,
      "indexInBatch": self.index_in_batch,
      "cleanedIndex": self.cleaned_index,
      "originalIndex": self.original_index,
      "identifierSnippet": self.identifier_snippet,
    }


@dataclass(frozen=True)
class BatchSummary:
  """Counts and per-target reports for one provider call.

  Counts come from the provider when it reports them; targets with unknown
  outcomes are in `details` but in neither count.
  """

  batch_size: int
  success_count: int
  failure_count: int
  details: tuple[TargetReport, ...]

  def to_payload(self) -> dict[str, Any]:
    """Serialize the summary and its details, preserving batch order."""
    return {"batchSize": self.batch_size, "successCount": self.success_count, "failureCount": self.failure_count, "details": [detail.to_payload() for detail in self.details]}


@dataclass(frozen=True)
class DispatchReport:
  """Top-level response for one dispatch cycle."""

  success: bool
  original_total: int
  sanitized_kept: int
  sanitized_removed_count: int
  sanitized_removed_sample: tuple[RejectedIdentifier, ...]
  batches: tuple[BatchSummary, ...]

  def to_payload(self) -> dict[str, Any]:
    """Serialize the whole report as returned by /send-force-online."""
    return {
      "success": self.success,
      "originalTotal": self.original_total,
      "sanitizedKept": self.sanitized_kept,
      "sanitizedRemovedCount": self.sanitized_removed_count,
      "sanitizedRemovedSample": [entry.to_payload() for entry in self.sanitized_removed_sample],
      "batches": [batch.to_payload() for batch in self.batches],
    }


class DispatchError(Exception):
  """Base class for failures raised by the dispatch pipeline."""


class ProviderCallError(DispatchError):
  """A whole provider call failed (transport, auth, outage), not a single target."""

  def __init__(self, message: str, *, code: str | None = None, http_status: int | None = None, body_snippet: str | None = None) -> None:
    super().__init__(message)
    self.message = message
    self.code = code
    self.http_status = http_status
    self.body_snippet = body_snippet

  def diagnostics(self) -> dict[str, Any]:
    """Return the structured fields for operational logs."""
    cause = self.__cause__
    return {"message": self.message, "code": self.code, "httpStatus": self.http_status, "bodySnippet": self.body_snippet, "causeType": type(cause).__name__ if cause is not None else None}


class BatchDispatchError(DispatchError):
  """Raised when a batch call fails and the dispatch cycle is aborted."""

  def __init__(self, batch_index: int, batch_count: int, cause: ProviderCallError) -> None:
    super().__init__(cause.message)
    self.batch_index = batch_index
    self.batch_count = batch_count
    self.cause = cause


class ProviderBinding(Protocol):
  """Contract for the push-delivery provider.

  A binding declares its capability once; the strategy selector only calls the
  method matching that tag.
  """

  @property
  def capability(self) -> DispatchCapability:
    """Return the call shape this binding serves."""

  async def send_multicast(self, tokens: Sequence[str], payload: WakeupPayload) -> ProviderResult:
    """Send one payload to many targets in a single call."""

  async def send_each(self, messages: Sequence[TargetMessage]) -> ProviderResult:
    """Send a list of fully-formed per-target messages in a single call."""

  async def send_one(self, message: TargetMessage) -> Any:
    """Send one message to one target; raise on failure."""


def _json_safe(value: Any) -> Any:
  """Coerce an arbitrary raw input into a JSON-safe value."""
  if isinstance(value, float) and not math.isfinite(value):
    # JSON has no NaN/Infinity; render them the way Python prints them.
    return repr(value)
  if value is None or isinstance(value, bool | int | float | str):
    return value
  if isinstance(value, dict):
    return {str(key): _json_safe(item) for key, item in value.items()}
  if isinstance(value, list | tuple):
    return [_json_safe(item) for item in value]
  return repr(value)
