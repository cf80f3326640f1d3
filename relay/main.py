from __future__ import annotations

from fastapi import FastAPI, HTTPException

from relay.api.routes import dispatch, system
from relay.config import get_settings
from relay.core.exceptions import global_exception_handler, http_exception_handler
from relay.core.lifespan import lifespan
from relay.core.middleware import RequestLoggingMiddleware

app = FastAPI(title="fanout-relay", lifespan=lifespan, docs_url=None, redoc_url=None, openapi_url=None)

app.add_exception_handler(Exception, global_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)

app.add_middleware(RequestLoggingMiddleware)

app.include_router(system.router, tags=["system"])
app.include_router(dispatch.router, tags=["dispatch"])


def run() -> None:
  """Serve the relay with uvicorn on the configured port."""
  import uvicorn

  settings = get_settings()
  # lifespan="on" makes a failed startup (bad credentials) exit the process.
  uvicorn.run("relay.main:app", host=settings.host, port=settings.port, lifespan="on", server_header=False)


if __name__ == "__main__":
  run()
