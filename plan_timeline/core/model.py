from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


# Largest integer that survives a round-trip through a JSON number.
UNRESOLVED: int = 2**53 - 1

# Ordinal for contributors that appear neither in the settings nor in the user list.
UNKNOWN_ORDINAL: int = 2**53 - 1


@dataclass(frozen=True)
class Interval:
    start: int
    end: int


@dataclass(frozen=True)
class ActivityInterval:
    start: int
    end: int
    assignees: tuple[str, ...] = ()
    is_waiting: bool = False


@dataclass(frozen=True)
class PlanningItem:
    id: str
    summary: str
    parent_id: str = ""
    resolved: int = UNRESOLVED
    assignee: str = ""
    activities: tuple[ActivityInterval, ...] = ()
    dependency_ids: tuple[str, ...] = ()
    custom_fields: dict[str, str] = field(default_factory=dict)

    @property
    def is_resolved(self) -> bool:
        return self.resolved < UNRESOLVED


@dataclass(frozen=True)
class PlanDocument:
    schema_version: str
    timestamp: int
    items: list[PlanningItem]


@dataclass(frozen=True)
class Contributor:
    id: str
    ordinal: int
    name: Optional[str] = None
    avatar_url: Optional[str] = None
    is_external: bool = False


class TaskKind(str, Enum):
    MAIN = "main"
    AGGREGATE_ONLY = "aggregate_only"
    ACTIVITY = "activity"


@dataclass(frozen=True)
class TaskIssue:
    """Per-item metadata shared by every task materialized for the item."""

    id: str
    url: str
    is_resolved: bool
    type_id: str
    state_id: str
    has_sub_issues: bool
    total_num_activities: int
    assignee: Optional[Contributor] = None


@dataclass(frozen=True)
class VisualTask:
    id: str
    kind: TaskKind
    text: str
    issue: TaskIssue
    start: Optional[int] = None
    end: Optional[int] = None
    parent: Optional[str] = None
    render_split: bool = False
    contributors: tuple[Contributor, ...] = ()
    is_waiting: bool = False
    is_in_future: bool = False
    index: Optional[int] = None  # position among non-waiting fragments

    @property
    def unscheduled(self) -> bool:
        return self.start is None


@dataclass(frozen=True)
class VisualLink:
    id: int
    source: str
    target: str
    type: str = "0"  # finish-to-start


@dataclass(frozen=True)
class TimelineData:
    tasks: list[VisualTask]
    links: list[VisualLink]
