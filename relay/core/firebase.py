import logging

import firebase_admin
from firebase_admin import credentials

from relay.config import Settings
from relay.core.credentials import CredentialError, ServiceAccountBundle

logger = logging.getLogger(__name__)


def initialize_firebase(bundle: ServiceAccountBundle, settings: Settings) -> firebase_admin.App:
  """Initialize the Firebase Admin SDK from a validated service-account bundle."""
  if firebase_admin._apps:
    return firebase_admin.get_app()

  try:
    cred = credentials.Certificate(bundle.as_dict())
  except (ValueError, KeyError) as exc:
    # Certificate() re-parses the PEM and rejects bundles the SDK cannot sign with.
    raise CredentialError(f"Failed to initialize firebase-admin credentials: {exc}") from exc

  options: dict[str, object] = {"httpTimeout": settings.provider_timeout_seconds}
  if bundle.project_id:
    options["projectId"] = bundle.project_id

  app = firebase_admin.initialize_app(cred, options)
  logger.info("firebase-admin initialized project_id=%s", bundle.project_id)
  return app
