"""Run one sanitize → partition → dispatch → normalize → aggregate cycle."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from relay.config import Settings
from relay.dispatch.contracts import BatchDispatchError, DispatchReport, ProviderBinding, ProviderCallError, RejectedIdentifier, WakeupPayload
from relay.dispatch.normalizer import mask_identifier, normalize
from relay.dispatch.partitioner import partition
from relay.dispatch.report import ReportAggregator
from relay.dispatch.sanitizer import SanitizeResult, sanitize
from relay.dispatch.strategy import dispatch_batch

logger = logging.getLogger(__name__)


class DispatchService:
  """Stateless per-request pipeline bound to one provider binding.

  Batches run strictly one after another; the first batch-call failure aborts
  the cycle before any later batch is attempted.
  """

  def __init__(self, *, provider: ProviderBinding, max_batch_size: int, removed_sample_size: int, log_sample_size: int, payload: WakeupPayload | None = None) -> None:
    self._provider = provider
    self._max_batch_size = max_batch_size
    self._removed_sample_size = removed_sample_size
    self._log_sample_size = log_sample_size
    self._payload = payload or WakeupPayload()

  @classmethod
  def from_settings(cls, settings: Settings, provider: ProviderBinding) -> DispatchService:
    return cls(provider=provider, max_batch_size=settings.max_batch_size, removed_sample_size=settings.removed_sample_size, log_sample_size=settings.log_sample_size)

  @property
  def provider(self) -> ProviderBinding:
    return self._provider

  def sanitize(self, raw: Sequence[Any]) -> SanitizeResult:
    """Sanitize raw identifiers and log what was dropped."""
    result = sanitize(raw)
    logger.info("Token sanitize: kept=%d, removed=%d", len(result.cleaned), len(result.rejected))
    if result.rejected:
      logger.warning("Sample removed tokens: %s", [_masked_rejection(entry) for entry in result.rejected[: self._log_sample_size]])
    return result

  async def dispatch(self, sanitized: SanitizeResult, *, original_total: int) -> DispatchReport:
    """Send every cleaned identifier and build the report.

    Raises BatchDispatchError when a batch call fails as a whole.
    """
    batches = partition(sanitized.cleaned, self._max_batch_size)
    aggregator = ReportAggregator(original_total=original_total, sanitized=sanitized, removed_sample_size=self._removed_sample_size)

    # Batches run strictly one after another so a failed call stops the rest.
    for batch_index, batch in enumerate(batches):
      try:
        result = await dispatch_batch(batch.members, self._provider, self._payload)
      except ProviderCallError as exc:
        logger.error("Error sending batch %d/%d size=%d diagnostics=%s", batch_index + 1, len(batches), len(batch), exc.diagnostics(), exc_info=True)
        raise BatchDispatchError(batch_index, len(batches), exc) from exc

      # Re-index every target against the cleaned and original sequences.
      summary = normalize(result, batch, sanitized.original_index, mask_identifier)
      logger.info("Batch sent size=%d, success=%d, fail=%d", summary.batch_size, summary.success_count, summary.failure_count)
      if summary.failure_count > 0:
        failures = [detail.to_payload() for detail in summary.details if not detail.success]
        logger.warning("Failures (sample up to %d): %s", self._log_sample_size, failures[: self._log_sample_size])
      aggregator.add(summary)

    logger.info("Dispatch complete batches=%d success=%d fail=%d", len(batches), aggregator.total_success, aggregator.total_failure)
    return aggregator.build()


def _masked_rejection(entry: RejectedIdentifier) -> dict[str, Any]:
  payload = entry.to_payload()
  if isinstance(entry.raw_value, str):
    payload["rawValue"] = mask_identifier(entry.raw_value)
  return payload
