"""Validate and deduplicate caller-supplied identifiers."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from relay.dispatch.contracts import CleanIdentifier, RejectedIdentifier, RejectionReason

MIN_IDENTIFIER_LENGTH = 20
SENTINEL_VALUES = frozenset({"unavailable", "null", "undefined"})


@dataclass(frozen=True)
class SanitizeResult:
  """Cleaned identifiers in acceptance order plus everything that was refused."""

  cleaned: tuple[CleanIdentifier, ...]
  rejected: tuple[RejectedIdentifier, ...]

  def original_index(self, cleaned_index: int) -> int:
    """Map a position in the cleaned sequence back to the caller's input position."""
    return self.cleaned[cleaned_index].original_index


def sanitize(raw: Sequence[Any], *, min_length: int = MIN_IDENTIFIER_LENGTH) -> SanitizeResult:
  """Split raw input into accepted and rejected identifiers without raising.

  Checks run in a fixed order per element: type, trim, empty/sentinel, minimum
  length, duplicate. The first occurrence of a value wins; later copies are
  rejected as duplicates.
  """
  cleaned: list[CleanIdentifier] = []
  rejected: list[RejectedIdentifier] = []
  seen: set[str] = set()

  for original_index, item in enumerate(raw):
    # bool is not a str subclass, so only real strings pass.
    if not isinstance(item, str):
      rejected.append(RejectedIdentifier(original_index=original_index, reason=RejectionReason.NOT_A_STRING, raw_value=item))
      continue

    value = item.strip()
    if not value or value.lower() in SENTINEL_VALUES:
      rejected.append(RejectedIdentifier(original_index=original_index, reason=RejectionReason.EMPTY_OR_SENTINEL, raw_value=value))
      continue

    if len(value) < min_length:
      rejected.append(RejectedIdentifier(original_index=original_index, reason=RejectionReason.TOO_SHORT, raw_value=value))
      continue

    if value in seen:
      rejected.append(RejectedIdentifier(original_index=original_index, reason=RejectionReason.DUPLICATE, raw_value=value))
      continue

    seen.add(value)
    cleaned.append(CleanIdentifier(value=value, original_index=original_index))

  return SanitizeResult(cleaned=tuple(cleaned), rejected=tuple(rejected))
