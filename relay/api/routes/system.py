"""Liveness and provider reachability diagnostics."""

from __future__ import annotations

import logging

import httpx
from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse, PlainTextResponse

from relay.api.deps import get_service_account
from relay.api.models import ReachProbeResponse
from relay.config import Settings, get_settings
from relay.core.credentials import ServiceAccountBundle
from relay.providers.reachability import probe_send_endpoint

logger = logging.getLogger(__name__)

LIVENESS_MESSAGE = "FCM Backend is running"

router = APIRouter()


@router.get("/", response_class=PlainTextResponse)
async def liveness() -> PlainTextResponse:
  """Return a plain-text liveness string."""
  return PlainTextResponse(LIVENESS_MESSAGE)


@router.get("/_debug_fcm_reach", include_in_schema=False)
async def debug_fcm_reach(bundle: ServiceAccountBundle = Depends(get_service_account), settings: Settings = Depends(get_settings)) -> JSONResponse:  # noqa: B008
  """Probe the messaging send endpoint and echo the raw status and body head."""
  try:
    result = await probe_send_endpoint(bundle.project_id, timeout_seconds=settings.probe_timeout_seconds)
  except httpx.HTTPError as exc:
    logger.warning("Messaging endpoint probe failed: %s", exc)
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"err": str(exc) or type(exc).__name__})

  body = ReachProbeResponse(status_code=result.status_code, body_snippet=result.body_snippet)
  return JSONResponse(status_code=status.HTTP_200_OK, content=body.model_dump(by_alias=True))
