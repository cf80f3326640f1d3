"""Shared FastAPI dependencies for request-scoped access to startup state."""

from __future__ import annotations

from fastapi import HTTPException, Request, status

from relay.core.credentials import ServiceAccountBundle
from relay.dispatch.service import DispatchService


def get_dispatch_service(request: Request) -> DispatchService:
  """Return the dispatch service built during startup."""
  service = getattr(request.app.state, "dispatch_service", None)
  if service is None:
    raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Dispatch service not initialized")
  return service


def get_service_account(request: Request) -> ServiceAccountBundle:
  """Return the validated service-account bundle loaded at startup."""
  bundle = getattr(request.app.state, "service_account", None)
  if bundle is None:
    raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Service account not loaded")
  return bundle
