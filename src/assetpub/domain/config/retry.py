"""Retry policy model."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class RetryPolicy(BaseModel):
    """Bounds on attempt count and delay growth for one retry call.

    Attributes:
        max_attempts: Total number of attempts, including the first one
        base_delay: Delay in seconds before the second attempt
        backoff_factor: Multiplier applied to the delay after each failure
        max_delay: Optional upper bound on a single delay (None = no cap)
        jitter: Random jitter factor (0.0-1.0), relative to base_delay
    """

    max_attempts: int = Field(5, ge=1)
    base_delay: float = Field(1.0, ge=0.0)
    backoff_factor: float = Field(2.0, gt=0.0)
    max_delay: Optional[float] = Field(None, ge=0.0)
    jitter: float = Field(0.0, ge=0.0, le=1.0)

    model_config = ConfigDict(frozen=True, extra="forbid")
