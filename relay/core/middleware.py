import json
import logging
import time
import uuid
from typing import Any

from starlette.datastructures import Headers, MutableHeaders
from starlette.responses import JSONResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from relay.config import get_settings
from relay.core.exceptions import PAYLOAD_TOO_LARGE_ERROR, error_payload

logger = logging.getLogger("relay.core.middleware")

REQUEST_ID_HEADER = "x-request-id"
_MAX_INBOUND_REQUEST_ID_CHARS = 128

_IDENTIFIER_LIST_KEYS = {"tokens", "registration_ids"}
_SENSITIVE_KEYS = {"token", "private_key", "authorization", "cookie", "secret", "key"}


def redact_payload(data: Any) -> Any:
  """Redact identifier lists and secret-looking keys recursively."""
  if isinstance(data, dict):
    redacted: dict[str, Any] = {}
    for key, value in data.items():
      lowered = str(key).lower()
      if lowered in _IDENTIFIER_LIST_KEYS and isinstance(value, list):
        redacted[key] = f"<{len(value)} identifiers>"
      elif lowered in _SENSITIVE_KEYS:
        redacted[key] = "***"
      else:
        redacted[key] = redact_payload(value)
    return redacted
  if isinstance(data, list):
    return [redact_payload(item) for item in data]
  return data


def _request_target(scope: Scope) -> str:
  target = scope.get("path", "")
  raw_query = scope.get("query_string", b"")
  return f"{target}?{raw_query.decode('latin-1')}" if raw_query else target


def _resolve_request_id(scope: Scope) -> str:
  """Reuse a caller-supplied request id when it is sane, otherwise mint one."""
  inbound = Headers(scope=scope).get(REQUEST_ID_HEADER, "").strip()
  if inbound and len(inbound) <= _MAX_INBOUND_REQUEST_ID_CHARS and inbound.isprintable():
    return inbound
  return uuid.uuid4().hex


def _format_body_for_log(body: bytes, max_bytes: int) -> str:
  """Format a JSON request/response body for logging with redaction."""
  if not body:
    return "<empty>"

  if len(body) > max_bytes:
    return f"<{len(body)} bytes, over log limit>"

  text = body.decode("utf-8", errors="replace")
  try:
    parsed = json.loads(text)
  except json.JSONDecodeError:
    return text

  return json.dumps(redact_payload(parsed), ensure_ascii=True)


async def _drain_request_body(receive: Receive, max_bytes: int) -> bytes | None:
  """Buffer the whole request body, or return None once it passes `max_bytes`."""
  chunks: list[bytes] = []
  received = 0
  while True:
    message = await receive()
    if message["type"] != "http.request":
      break
    chunk = message.get("body", b"")
    received += len(chunk)
    if received > max_bytes:
      return None
    chunks.append(chunk)
    if not message.get("more_body", False):
      break
  return b"".join(chunks)


def _replaying_receive(body: bytes) -> Receive:
  """Hand the buffered body to the app once, then report an empty stream."""
  pending = [body]

  async def receive() -> Message:
    chunk = pending.pop() if pending else b""
    return {"type": "http.request", "body": chunk, "more_body": False}

  return receive


class RequestLoggingMiddleware:
  """Tag every HTTP exchange with a request id and log its outcome.

  Bodies are buffered and logged (redacted, size-capped) only when
  RELAY_LOG_HTTP_BODIES is on; identifier lists never reach the log verbatim.
  """

  def __init__(self, app: ASGIApp) -> None:
    self.app = app

  async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
    # Lifespan events pass straight through.
    if scope["type"] != "http":
      await self.app(scope, receive, send)
      return

    settings = get_settings()
    request_id = _resolve_request_id(scope)
    scope.setdefault("state", {})["request_id"] = request_id

    started = time.perf_counter()
    logger.info("Incoming request request_id=%s %s %s", request_id, scope.get("method", "UNKNOWN"), _request_target(scope))

    response_status = 0
    response_body = bytearray()

    async def send_with_request_id(message: Message) -> None:
      nonlocal response_status
      if message["type"] == "http.response.start":
        response_status = message["status"]
        headers = MutableHeaders(scope=message)
        headers.setdefault(REQUEST_ID_HEADER, request_id)
      elif message["type"] == "http.response.body" and settings.log_http_bodies:
        response_body.extend(message.get("body", b""))
      await send(message)

    if settings.log_http_bodies:
      # Buffering is bounded by the same limit the routes enforce.
      request_body = await _drain_request_body(receive, settings.max_body_bytes)
      if request_body is None:
        logger.warning("Request body request_id=%s body=<over %d byte limit>", request_id, settings.max_body_bytes)
        await JSONResponse(status_code=413, content=error_payload(PAYLOAD_TOO_LARGE_ERROR))(scope, receive, send_with_request_id)
      else:
        logger.info("Request body request_id=%s body=%s", request_id, _format_body_for_log(request_body, settings.log_http_body_bytes))
        await self.app(scope, _replaying_receive(request_body), send_with_request_id)
    else:
      await self.app(scope, receive, send_with_request_id)

    elapsed_ms = (time.perf_counter() - started) * 1000
    logger.info("Response request_id=%s status=%d (took %.2fms)", request_id, response_status, elapsed_ms)
    if settings.log_http_bodies:
      logger.info("Response body request_id=%s body=%s", request_id, _format_body_for_log(bytes(response_body), settings.log_http_body_bytes))

