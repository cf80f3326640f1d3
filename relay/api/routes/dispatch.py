"""Wake-up fan-out endpoint."""

from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from relay.api.deps import get_dispatch_service
from relay.api.models import SendForceOnlineRequest
from relay.config import Settings, get_settings
from relay.core.exceptions import PAYLOAD_TOO_LARGE_ERROR, PayloadTooLargeError, error_payload
from relay.core.middleware import redact_payload
from relay.dispatch.contracts import BatchDispatchError
from relay.dispatch.service import DispatchService

logger = logging.getLogger(__name__)

NO_TOKENS_ERROR = "No tokens provided or invalid format"
ALL_INVALID_ERROR = "All tokens were invalid after sanitize"

router = APIRouter()


def _reject_constant(name: str) -> Any:
  # NaN and +/-Infinity are not JSON; strict parsers refuse them.
  raise ValueError(f"Non-standard JSON constant {name}")


async def _read_body(request: Request, max_bytes: int) -> bytes:
  """Read the request body, refusing anything larger than `max_bytes`."""
  declared = request.headers.get("content-length", "")
  if declared.isdigit() and int(declared) > max_bytes:
    raise PayloadTooLargeError(int(declared), max_bytes)

  # Chunked uploads carry no content-length, so count while streaming.
  received = bytearray()
  async for chunk in request.stream():
    received.extend(chunk)
    if len(received) > max_bytes:
      raise PayloadTooLargeError(len(received), max_bytes)
  return bytes(received)


def _decode_json(raw: bytes) -> Any:
  """Return the decoded JSON body, or None when it is missing or malformed."""
  if not raw:
    return None
  try:
    return json.loads(raw, parse_constant=_reject_constant)
  except ValueError:
    # Covers JSONDecodeError, bad UTF-8 and the non-finite constants above.
    return None



def _parse_request(body: Any) -> SendForceOnlineRequest | None:
  if not isinstance(body, dict):
    return None
  try:
    return SendForceOnlineRequest.model_validate(body)
  except ValidationError:
    return None


def _body_preview(body: Any, limit: int) -> str:
  return json.dumps(redact_payload(body), separators=(",", ":"), default=str)[:limit]


@router.post("/send-force-online")
async def send_force_online(request: Request, service: DispatchService = Depends(get_dispatch_service), settings: Settings = Depends(get_settings)) -> JSONResponse:  # noqa: B008
  """Send a background-service wake-up to every device in the request."""
  try:
    try:
      raw = await _read_body(request, settings.max_body_bytes)
    except PayloadTooLargeError as exc:
      logger.warning("Rejecting /send-force-online body: %s", exc)
      return JSONResponse(status_code=413, content=error_payload(PAYLOAD_TOO_LARGE_ERROR))

    body = _decode_json(raw)
    logger.info("Incoming /send-force-online body: %s", _body_preview(body, settings.body_preview_chars))

    parsed = _parse_request(body)
    raw_tokens = parsed.raw_tokens() if parsed is not None else None
    if not raw_tokens:
      logger.warning("No tokens provided or invalid format.")
      return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=error_payload(NO_TOKENS_ERROR))

    sanitized = service.sanitize(raw_tokens)
    if not sanitized.cleaned:
      return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=error_payload(ALL_INVALID_ERROR, removed=[entry.to_payload() for entry in sanitized.rejected]))

    try:
      report = await service.dispatch(sanitized, original_total=len(raw_tokens))
    except BatchDispatchError as exc:
      # Diagnostics were logged by the service; the client only gets the message.
      logger.error("Dispatch aborted at batch %d/%d: %s", exc.batch_index + 1, exc.batch_count, exc.cause.message)
      return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=error_payload(exc.cause.message or "send_error"))

    return JSONResponse(status_code=status.HTTP_200_OK, content=report.to_payload())

  except Exception as exc:  # noqa: BLE001
    logger.error("Error in /send-force-online", exc_info=True)
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=error_payload(str(exc) or "server_error"))
