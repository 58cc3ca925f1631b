from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Protocol

from app.staffpanel.models import StaffUser


@dataclass(frozen=True)
class EnhancedStat:
    key: str
    title: str
    value: int | float | str
    description: str | None = None
    icon: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class StatsProvider(Protocol):
    def get_panel_stats(self, user: StaffUser | None = None) -> list[EnhancedStat]:
        ...
