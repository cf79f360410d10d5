"""Pydantic schema for performance log entries."""

from __future__ import annotations

from pydantic import BaseModel, Field


class PerformanceEntry(BaseModel):
    """Timing and memory figures for one request.

    Serialized as one JSON object per line in ``performance-YYYY-MM-DD.log``.
    """

    method: str = Field(..., description="HTTP method.")
    url: str = Field(..., description="Full request URL.")
    route: str | None = Field(
        default=None, description="Matched route path template, if any."
    )
    seconds: float = Field(..., description="Wall time, rounded to 2 decimals.")
    megabytes: int = Field(..., description="Peak process memory in MB, rounded up.")

    @property
    def hungriness(self) -> float:
        return self.megabytes * self.seconds
