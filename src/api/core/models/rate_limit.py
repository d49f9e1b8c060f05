"""Rate limiting types and models."""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel


class RateLimitClientType(str, Enum):
    """Types of clients for rate limiting."""

    IP = "ip"


# Cache keys: rate_limit:{client_type}:{identifier}
# Example: rate_limit:ip:1.2.3.4


class ClientIdentifier(BaseModel):
    """Client identifier for rate limiting."""

    client_type: RateLimitClientType
    client_id: str

    def to_cache_key(self) -> str:
        """Generate the quota store key for this client."""
        return f"rate_limit:{self.client_type.value}:{self.client_id}"

    def __str__(self) -> str:
        """String representation for logging."""
        return f"{self.client_type.value}:{self.client_id}"


@dataclass
class ClientQuotaRecord:
    """Requests seen for one client in its current window."""

    client_key: str
    count: int
    window_reset_at: float  # epoch seconds


class RateLimitResult(BaseModel):
    """Result of rate limit check."""

    is_allowed: bool
    remaining: int
    current_count: int
    reset_at: float
    limit: int
    window_seconds: int

    @property
    def reset_datetime(self) -> datetime:
        return datetime.fromtimestamp(self.reset_at, tz=timezone.utc)

    @property
    def retry_after_seconds(self) -> int:
        """Whole seconds until the window resets, never negative."""
        now = datetime.now(timezone.utc).timestamp()
        return max(0, int(self.reset_at - now + 0.999))
