from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

TOKEN_FIELDS = ("tokens", "registration_ids")


class SendForceOnlineRequest(BaseModel):
  """Body of a wake-up request.

  Both fields stay untyped on purpose: a non-array `tokens` must fall through to
  `registration_ids` instead of failing validation.
  """

  tokens: Any = None
  registration_ids: Any = None
  model_config = ConfigDict(extra="allow")

  def raw_tokens(self) -> list[Any] | None:
    """Return the first array-typed identifier field, in field priority order."""
    for name in TOKEN_FIELDS:
      value = getattr(self, name)
      if isinstance(value, list):
        return value
    return None


class ReachProbeResponse(BaseModel):
  status_code: int = Field(serialization_alias="statusCode")
  body_snippet: str = Field(serialization_alias="bodySnippet")
