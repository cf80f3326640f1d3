"""Accumulate per-batch summaries into the response for one dispatch cycle."""

from __future__ import annotations

from relay.dispatch.contracts import BatchSummary, DispatchReport
from relay.dispatch.sanitizer import SanitizeResult

DEFAULT_REMOVED_SAMPLE_SIZE = 20


class ReportAggregator:
  """Collects batch summaries in order and carries the sanitizer statistics."""

  def __init__(self, *, original_total: int, sanitized: SanitizeResult, removed_sample_size: int = DEFAULT_REMOVED_SAMPLE_SIZE) -> None:
    self._original_total = original_total
    self._sanitized = sanitized
    self._removed_sample_size = removed_sample_size
    self._batches: list[BatchSummary] = []

  def add(self, summary: BatchSummary) -> None:
    """Append a batch summary; call in batch order."""
    self._batches.append(summary)

  @property
  def total_success(self) -> int:
    return sum(summary.success_count for summary in self._batches)

  @property
  def total_failure(self) -> int:
    return sum(summary.failure_count for summary in self._batches)

  def build(self) -> DispatchReport:
    """Assemble the final report, keeping only the first removed entries as a sample."""
    rejected = self._sanitized.rejected
    return DispatchReport(
      success=True,
      original_total=self._original_total,
      sanitized_kept=len(self._sanitized.cleaned),
      sanitized_removed_count=len(rejected),
      sanitized_removed_sample=rejected[: self._removed_sample_size],
      batches=tuple(self._batches),
    )
