"""Immutable records produced by the insight engine."""

import copy
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any


class Impact(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    POSITIVE = "positive"
    INFO = "info"


class Priority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Severity(str, Enum):
    WARNING = "warning"
    CRITICAL = "critical"


@dataclass(frozen=True)
class Insight:
    type: str
    title: str
    description: str
    impact: Impact
    timestamp: datetime
    data: Any = None

    def to_dict(self) -> dict[str, Any]:
        result = {
            "type": self.type,
            "title": self.title,
            "description": self.description,
            "impact": self.impact.value,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.data is not None:
            result["data"] = copy.deepcopy(self.data)
        return result


@dataclass(frozen=True)
class Recommendation:
    type: str
    title: str
    description: str
    priority: Priority
    timestamp: datetime
    data: Any = None

    def to_dict(self) -> dict[str, Any]:
        result = {
            "type": self.type,
            "title": self.title,
            "description": self.description,
            "priority": self.priority.value,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.data is not None:
            result["data"] = copy.deepcopy(self.data)
        return result


@dataclass(frozen=True)
class Alert:
    type: str
    title: str
    description: str
    severity: Severity
    timestamp: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "title": self.title,
            "description": self.description,
            "severity": self.severity.value,
            "timestamp": self.timestamp.isoformat(),
        }
