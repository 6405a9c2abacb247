from typing import Any

from pydantic import BaseModel, ConfigDict

from files_gateway.outcomes import Outcome


class GatewayResponse(BaseModel):
    """Reply sent for every message, success or failure."""

    success: bool = True
    status: Outcome = Outcome.SUCCESS
    code: str = "OK"
    message: str = "OK"
    data: Any = None
    id: str | None = None

    # Binary payloads (file reads) travel as base64 in JSON
    model_config = ConfigDict(ser_json_bytes="base64")


class MessageEnvelope(BaseModel):
    """Wire envelope: ``{"pattern": ..., "data": {...}, "id": ...}``."""

    pattern: str
    data: dict[str, Any] = {}
    id: str | None = None
