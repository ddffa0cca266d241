from __future__ import annotations

from typing import List

from studyaid.schemas.common import CamelModel


class StatCard(CamelModel):
    title: str
    value: str
    icon: str
    color: str


class ActivityItem(CamelModel):
    id: int
    type: str  # quiz | flashcards
    topic: str
    score: str
    time: str


class PerformancePoint(CamelModel):
    label: str
    value: int


class DashboardOut(CamelModel):
    user_name: str
    stats: List[StatCard]
    recent_activity: List[ActivityItem]
    performance: List[PerformancePoint]
