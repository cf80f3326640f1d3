import logging
from typing import Any

from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger("uvicorn.error")

PAYLOAD_TOO_LARGE_ERROR = "Request body too large"


class PayloadTooLargeError(Exception):
  """Raised when a request body exceeds the configured byte limit."""

  def __init__(self, size: int, limit: int) -> None:
    super().__init__(f"body of at least {size} bytes exceeds the {limit} byte limit")
    self.size = size
    self.limit = limit


def error_payload(error: str, **extra: Any) -> dict[str, Any]:
  """Build the failure envelope every relay endpoint returns."""
  payload: dict[str, Any] = {"success": False, "error": error}
  payload.update(extra)
  return payload


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
  """Catch anything the route handlers did not turn into a response."""
  request_id = getattr(request.state, "request_id", None)
  logger.error("Global exception request_id=%s path=%s error_type=%s", request_id, request.url.path, type(exc).__name__, exc_info=exc)
  return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=error_payload(str(exc) or "server_error"))


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
  """Render HTTPExceptions in the relay's failure envelope."""
  request_id = getattr(request.state, "request_id", None)
  if exc.status_code >= 500:
    logger.error("HTTPException request_id=%s path=%s status_code=%s detail=%s", request_id, request.url.path, exc.status_code, exc.detail)
  detail = exc.detail if isinstance(exc.detail, str) else "request_failed"
  return JSONResponse(status_code=exc.status_code, content=error_payload(detail), headers=getattr(exc, "headers", None))
