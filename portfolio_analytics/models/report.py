"""Report records compiled by the report generator."""

import copy
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any


class ReportType(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    PERFORMANCE = "performance"

    @classmethod
    def values(cls) -> list[str]:
        return [member.value for member in cls]


@dataclass(frozen=True)
class Report:
    """
    A dated snapshot of engine state.

    The payload is built from fresh values at generation time and handed out
    only as deep copies, so later ledger mutations never leak into it.
    """

    id: str
    type: ReportType
    generated_at: datetime
    period: dict[str, str | None]
    data: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "generated_at": self.generated_at.isoformat(),
            "period": dict(self.period),
            "data": copy.deepcopy(self.data),
        }
