"""Authentication related schemas."""
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class TokenPayload(BaseModel):
    """Payload data extracted from access tokens."""

    sub: int
    exp: datetime
    type: str
