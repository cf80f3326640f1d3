"""Bare reachability probe against the messaging send endpoint."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

logger = logging.getLogger(__name__)

FCM_SEND_URL_TEMPLATE = "https://fcm.googleapis.com/v1/projects/{project_id}/messages:send"
PROBE_BODY_SNIPPET_CHARS = 1000


@dataclass(frozen=True)
class ProbeResult:
  status_code: int
  body_snippet: str


def send_endpoint_url(project_id: str | None) -> str:
  return FCM_SEND_URL_TEMPLATE.format(project_id=project_id or "")


async def probe_send_endpoint(project_id: str | None, *, timeout_seconds: float, transport: httpx.AsyncBaseTransport | None = None) -> ProbeResult:
  """Issue an unauthenticated GET and echo what came back.

  Any HTTP status counts as reachable; only transport failures raise
  (httpx.HTTPError).
  """
  url = send_endpoint_url(project_id)
  async with httpx.AsyncClient(timeout=timeout_seconds, transport=transport) as client:
    logger.info("Probing messaging endpoint %s", url)
    response = await client.get(url)

  return ProbeResult(status_code=response.status_code, body_snippet=response.text[:PROBE_BODY_SNIPPET_CHARS])
