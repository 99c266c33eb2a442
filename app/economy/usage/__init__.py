from app.economy.usage.service import UsageService
from app.economy.usage.types import UsageSnapshot
from app.economy.usage.window import month_window

__all__ = ["UsageService", "UsageSnapshot", "month_window"]
