"""
Data models for queue messages.
"""

from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from typing import Optional

from shortlink_app.timeutils import utcnow


class ClickContext(BaseModel):
    """
    Everything the click recorder needs about one successful redirect.

    Built at request time from headers only (no I/O), then either handed to
    an in-process background task or published to the queue for a worker.
    The raw client address never makes it in here, only its hash.
    """

    url_id: int = Field(..., description="Id of the link that was visited")
    slug: str = Field(..., description="The slug that was accessed")
    timestamp: datetime = Field(default_factory=utcnow, description="When the click occurred")

    # Request metadata
    ip_hash: Optional[str] = Field(None, description="Truncated hash of client address or fingerprint")
    user_agent: Optional[str] = Field(None, description="User agent string")
    referrer: Optional[str] = Field(None, description="HTTP referer")

    # Edge geolocation
    country: Optional[str] = Field(None, description="Country code (e.g., US, DE)")
    city: Optional[str] = Field(None, description="City name")

    # Set by queue backends that need acknowledgment
    message_id: Optional[str] = Field(None, exclude=True)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "url_id": 42,
                "slug": "abc123",
                "timestamp": "2025-10-29T10:30:00Z",
                "ip_hash": "3f2a9c0d1e7b6a55",
                "user_agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) Chrome/120.0",
                "referrer": "https://twitter.com",
                "country": "US",
                "city": "Seattle",
            }
        }
    )
