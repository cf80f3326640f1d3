"""Split the cleaned identifier sequence into provider-sized batches."""

from __future__ import annotations

from collections.abc import Sequence

from relay.config import PROVIDER_MAX_BATCH_SIZE
from relay.dispatch.contracts import Batch, CleanIdentifier


def partition(cleaned: Sequence[CleanIdentifier] | Sequence[str], max_size: int = PROVIDER_MAX_BATCH_SIZE) -> list[Batch]:
  """Return contiguous batches of at most `max_size` members, in order."""
  if max_size <= 0:
    raise ValueError(f"max_size must be a positive integer, got {max_size}.")

  # start_offset is the cleaned index of the first member, so offsets double as running totals.
  values = [entry.value if isinstance(entry, CleanIdentifier) else entry for entry in cleaned]
  return [Batch(members=tuple(values[offset : offset + max_size]), start_offset=offset) for offset in range(0, len(values), max_size)]
