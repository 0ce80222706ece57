# galibot_engine/models/stats.py
"""Statistics models."""

from pydantic import BaseModel, Field


class CacheStats(BaseModel):
    """Statistics for CacheStore performance."""

    size: int = Field(default=0, description="Current number of entries")
    high_water_mark: int = Field(default=1000, description="Size that triggers a sweep")
    hits: int = Field(default=0, description="Total cache hits")
    misses: int = Field(default=0, description="Total cache misses")
    expirations: int = Field(default=0, description="Entries dropped because their TTL elapsed")
    sweeps: int = Field(default=0, description="Expiry sweeps triggered by writes")
    invalidations: int = Field(default=0, description="Entries removed by delete/delete_by_prefix")

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        if total == 0:
            return 0.0
        return self.hits / total


class BackgroundStats(BaseModel):
    """Counters for fire-and-forget work."""

    spawned: int = 0
    completed: int = 0
    failed: int = 0
    pending: int = 0
