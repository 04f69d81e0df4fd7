from datetime import date, datetime
from typing import List

from pydantic import BaseModel


class DailyClicks(BaseModel):
    day: date
    clicks: int


class CountEntry(BaseModel):
    name: str
    value: int


class AnalyticsSummary(BaseModel):
    """Per-link breakdown, the data behind the dashboard charts"""
    link_id: int
    slug: str
    total_clicks: int
    unique_visitors: int
    unique_countries: int
    days: int
    clicks_over_time: List[DailyClicks]
    devices: List[CountEntry]
    browsers: List[CountEntry]
    operating_systems: List[CountEntry]
    countries: List[CountEntry]
    referrers: List[CountEntry]


class CleanupResult(BaseModel):
    success: bool
    deleted_count: int
    days_old: int
    timestamp: datetime


class HealthStatus(BaseModel):
    status: str
    environment: str
    database: str
