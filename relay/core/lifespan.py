import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from relay.core.credentials import CredentialError, load_service_account, log_credential_summary
from relay.core.env_contract import EnvContractError, validate_runtime_env_or_raise
from relay.core.firebase import initialize_firebase
from relay.core.logging import initialize_logging
from relay.dispatch.service import DispatchService
from relay.providers.fcm import FirebaseMessagingBinding


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
  """Load credentials and build the dispatch service before serving requests.

  Any configuration failure propagates so the server refuses to start.
  """
  from relay.config import get_settings

  # Logging first; every later startup step logs through it.
  settings = get_settings()
  logger = logging.getLogger("relay.core.lifespan")
  initialize_logging(settings)

  # Env contract, credentials and the firebase app must all be valid before serving.
  try:
    validate_runtime_env_or_raise(logger=logger)
    bundle = load_service_account(settings)
    log_credential_summary(bundle, logger=logger)
    firebase_app = initialize_firebase(bundle, settings)
  except (EnvContractError, CredentialError):
    logger.error("Startup configuration invalid; refusing to start the service.", exc_info=True)
    raise

  # The binding resolves its call shape once; requests never re-probe the SDK.
  binding = FirebaseMessagingBinding(app=firebase_app, strategy=settings.dispatch_strategy)
  logger.info("messaging methods: %s", binding.describe())

  app.state.service_account = bundle
  service = DispatchService.from_settings(settings, binding)
  app.state.dispatch_service = service
  logger.info("Startup complete port=%d max_batch_size=%d capability=%s", settings.port, settings.max_batch_size, service.provider.capability.value)

  yield
