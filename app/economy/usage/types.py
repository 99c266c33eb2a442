from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True, slots=True)
class UsageSnapshot:
    action: str
    plan: str
    used: int
    limit: int
    window_start: datetime
    window_end: datetime

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.used)

    @property
    def next_reset_at(self) -> datetime:
        return self.window_end

    @property
    def limit_reached(self) -> bool:
        return self.used >= self.limit
