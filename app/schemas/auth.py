"""Authentication related schemas."""
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class TokenPayload(BaseModel):
    """Payload data extracted from access tokens issued by the auth service."""

    sub: str = Field(min_length=1)
    exp: datetime
    type: str
