"""Pick and execute the provider call shape for one batch."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

from relay.dispatch.contracts import CountedResult, DispatchCapability, DispatchOutcome, ProviderBinding, ProviderResult, TargetMessage, WakeupPayload

logger = logging.getLogger(__name__)

# Highest-efficiency first; the binding's declared capability picks one rung.
DISPATCH_LADDER: tuple[DispatchCapability, ...] = (DispatchCapability.BULK_MULTI, DispatchCapability.BULK_ARRAY, DispatchCapability.SEQUENTIAL)


async def dispatch_batch(tokens: Sequence[str], provider: ProviderBinding, payload: WakeupPayload | None = None) -> ProviderResult:
  """Send the wake-up payload to every token of one batch.

  Per-target failures are folded into the result. A failure of the batch call
  itself (ProviderCallError from the binding) propagates to the caller.
  """
  payload = payload or WakeupPayload()
  capability = provider.capability

  if capability is DispatchCapability.BULK_MULTI:
    logger.debug("Dispatching batch via multicast size=%d", len(tokens))
    return await provider.send_multicast(list(tokens), payload)

  if capability is DispatchCapability.BULK_ARRAY:
    logger.debug("Dispatching batch via message array size=%d", len(tokens))
    messages = [TargetMessage(target=token, payload=payload) for token in tokens]
    return await provider.send_each(messages)

  if capability is DispatchCapability.SEQUENTIAL:
    logger.debug("Dispatching batch via per-target sends size=%d", len(tokens))
    return await _send_sequential(tokens, provider, payload)

  raise ValueError(f"Unsupported dispatch capability: {capability!r}")


async def _send_sequential(tokens: Sequence[str], provider: ProviderBinding, payload: WakeupPayload) -> CountedResult:
  """Send one message per token concurrently and count the outcomes."""
  # _send_isolated never raises, so one bad token cannot cancel its siblings.
  outcomes = await asyncio.gather(*(_send_isolated(TargetMessage(target=token, payload=payload), provider) for token in tokens))
  success_count = sum(1 for outcome in outcomes if outcome.success)
  return CountedResult(responses=tuple(outcomes), success_count=success_count, failure_count=len(outcomes) - success_count)


async def _send_isolated(message: TargetMessage, provider: ProviderBinding) -> DispatchOutcome:
  """Send a single message, capturing its failure instead of raising."""
  try:
    await provider.send_one(message)
  except Exception as exc:  # noqa: BLE001
    return DispatchOutcome(success=False, error=exc)
  return DispatchOutcome(success=True)
