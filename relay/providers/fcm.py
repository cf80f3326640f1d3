"""Firebase Cloud Messaging binding for the dispatch pipeline.

The binding is the only module that knows firebase-admin types. It declares its
call shape once, runs the blocking SDK calls in the threadpool, turns SDK batch
responses into provider results and SDK exceptions into ProviderCallError.
"""

from __future__ import annotations

import datetime
import logging
from collections.abc import Sequence
from types import ModuleType
from typing import Any

import firebase_admin
from firebase_admin import exceptions as firebase_exceptions
from firebase_admin import messaging as firebase_messaging
from google.auth import exceptions as google_auth_exceptions
from starlette.concurrency import run_in_threadpool

from relay.dispatch.contracts import CountedResult, DispatchCapability, DispatchOutcome, OpaqueResult, ProviderCallError, ProviderResult, ResponsesOnlyResult, TargetMessage, WakeupPayload
from relay.dispatch.strategy import DISPATCH_LADDER

logger = logging.getLogger(__name__)

BODY_SNIPPET_CHARS = 1000
AUTH_FAILURE_MESSAGE = "Failed to authenticate with the messaging provider."

# Newer SDK names first; the legacy names were removed in firebase-admin 7.
_METHODS_BY_CAPABILITY: dict[DispatchCapability, tuple[str, ...]] = {
  DispatchCapability.BULK_MULTI: ("send_each_for_multicast", "send_multicast"),
  DispatchCapability.BULK_ARRAY: ("send_each", "send_all"),
  DispatchCapability.SEQUENTIAL: ("send",),
}


def _find_method(module: ModuleType | Any, capability: DispatchCapability) -> str | None:
  """Return the first SDK method name serving `capability`, or None when the module has none."""
  for name in _METHODS_BY_CAPABILITY[capability]:
    if callable(getattr(module, name, None)):
      return name
  return None


def describe_messaging(module: ModuleType | Any = firebase_messaging) -> dict[str, str | None]:
  """Report which SDK method serves each call shape, for startup logs."""
  return {capability.value: _find_method(module, capability) for capability in DISPATCH_LADDER}


def resolve_capability(module: ModuleType | Any = firebase_messaging, forced: str | None = None) -> DispatchCapability:
  """Pick the most efficient call shape the messaging module supports."""
  if forced and forced != "auto":
    capability = DispatchCapability(forced)
    if _find_method(module, capability) is None:
      raise ValueError(f"Messaging module does not support forced dispatch strategy {forced!r}.")
    return capability

  for capability in DISPATCH_LADDER:
    if _find_method(module, capability) is not None:
      return capability

  raise ValueError("Messaging module exposes no usable send method.")


def provider_error_from(exc: BaseException) -> ProviderCallError:
  """Translate an SDK exception into the structured provider error."""
  if isinstance(exc, google_auth_exceptions.GoogleAuthError):
    # Token refresh failures: the auth-server text only goes into the snippet, which is logged and never returned.
    return ProviderCallError(AUTH_FAILURE_MESSAGE, code=type(exc).__name__, body_snippet=str(exc)[:BODY_SNIPPET_CHARS])

  http_response = getattr(exc, "http_response", None)
  status = getattr(http_response, "status_code", None)
  body = getattr(http_response, "text", None)
  code = getattr(exc, "code", None)
  return ProviderCallError(
    str(exc) or type(exc).__name__,
    code=str(code) if code else None,
    http_status=status if isinstance(status, int) else None,
    body_snippet=body[:BODY_SNIPPET_CHARS] if isinstance(body, str) else None,
  )


def to_provider_result(response: Any) -> ProviderResult:
  """Convert an SDK batch response into the matching provider result variant."""
  responses = getattr(response, "responses", None)
  if responses is None:
    return OpaqueResult(raw=response)

  # SendResponse.exception holds the per-token FirebaseError (None on success).
  outcomes = tuple(DispatchOutcome(success=bool(getattr(item, "success", False)), error=getattr(item, "exception", None)) for item in responses)
  success_count = getattr(response, "success_count", None)
  failure_count = getattr(response, "failure_count", None)
  if isinstance(success_count, int) and isinstance(failure_count, int):
    return CountedResult(responses=outcomes, success_count=success_count, failure_count=failure_count)

  return ResponsesOnlyResult(responses=outcomes)


class FirebaseMessagingBinding:
  """Provider binding backed by `firebase_admin.messaging`."""

  def __init__(self, *, app: firebase_admin.App | None = None, messaging_module: ModuleType | Any = firebase_messaging, strategy: str | None = None, dry_run: bool = False) -> None:
    self._app = app
    self._messaging = messaging_module
    self._dry_run = dry_run
    self._capability = resolve_capability(messaging_module, strategy)

  @property
  def capability(self) -> DispatchCapability:
    return self._capability

  def describe(self) -> dict[str, Any]:
    """Summarize the chosen capability and the SDK methods found, for startup logs."""
    return {"capability": self._capability.value, "methods": describe_messaging(self._messaging)}

  def _android_config(self, payload: WakeupPayload) -> Any:
    options = payload.platform_options()
    # ttl is a timedelta in the SDK, milliseconds in the payload.
    return self._messaging.AndroidConfig(priority=options["priority"], ttl=datetime.timedelta(milliseconds=options["ttl"]))

  def _build_message(self, message: TargetMessage) -> Any:
    """Build one SDK Message addressed to a single registration token."""
    return self._messaging.Message(token=message.target, data=dict(message.payload.data), android=self._android_config(message.payload))

  async def _call(self, capability: DispatchCapability, argument: Any) -> Any:
    """Run the SDK method for `capability` off the event loop and translate its errors."""
    method_name = _find_method(self._messaging, capability)
    if method_name is None:
      raise ProviderCallError(f"Messaging module has no method for {capability.value}.", code="unsupported-capability")

    method = getattr(self._messaging, method_name)
    # Blocking SDK call; runs on the threadpool.
    try:
      return await run_in_threadpool(method, argument, dry_run=self._dry_run, app=self._app)
    except (firebase_exceptions.FirebaseError, google_auth_exceptions.GoogleAuthError, ValueError) as exc:
      raise provider_error_from(exc) from exc

  async def send_multicast(self, tokens: Sequence[str], payload: WakeupPayload) -> ProviderResult:
    """Send one MulticastMessage carrying every token of the batch."""
    multicast = self._messaging.MulticastMessage(tokens=list(tokens), data=dict(payload.data), android=self._android_config(payload))
    response = await self._call(DispatchCapability.BULK_MULTI, multicast)
    return to_provider_result(response)

  async def send_each(self, messages: Sequence[TargetMessage]) -> ProviderResult:
    """Send a list of per-token Messages in a single SDK call."""
    response = await self._call(DispatchCapability.BULK_ARRAY, [self._build_message(message) for message in messages])
    return to_provider_result(response)

  async def send_one(self, message: TargetMessage) -> Any:
    """Send one Message; the SDK returns the message id or raises."""
    return await self._call(DispatchCapability.SEQUENTIAL, self._build_message(message))
