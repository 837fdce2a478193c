from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Literal, Optional

import yaml

from plan_timeline.core.model import Contributor, TaskIssue, TimelineData, VisualLink, VisualTask


OutputFormat = Literal["json", "yaml"]


def timeline_to_dict(data: TimelineData) -> dict[str, Any]:
    """Plain, serializable view of a timeline: ``{"data": [...], "links": [...]}``."""

    return {
        "data": [task_to_dict(t) for t in data.tasks],
        "links": [link_to_dict(link) for link in data.links],
    }


def task_to_dict(task: VisualTask) -> dict[str, Any]:
    out: dict[str, Any] = {"id": task.id, "text": task.text, "kind": task.kind.value}
    if task.unscheduled:
        out["unscheduled"] = True
    else:
        out["start_date"] = task.start
        out["end_date"] = task.end
    if task.parent is not None:
        out["parent"] = task.parent
    if task.render_split:
        out["render"] = "split"
    out["contributors"] = [contributor_to_dict(c) for c in task.contributors]
    out["is_waiting"] = task.is_waiting
    out["is_in_future"] = task.is_in_future
    out["index"] = task.index
    out["issue"] = issue_to_dict(task.issue)
    return out


def issue_to_dict(issue: TaskIssue) -> dict[str, Any]:
    return {
        "id": issue.id,
        "url": issue.url,
        "is_resolved": issue.is_resolved,
        "type_id": issue.type_id,
        "state_id": issue.state_id,
        "assignee": contributor_to_dict(issue.assignee) if issue.assignee else None,
        "has_sub_issues": issue.has_sub_issues,
        "total_num_activities": issue.total_num_activities,
    }


def contributor_to_dict(contributor: Contributor) -> dict[str, Any]:
    return {
        "id": contributor.id,
        "name": contributor.name,
        "avatar_url": contributor.avatar_url,
        "is_external": contributor.is_external,
        "ordinal": contributor.ordinal,
    }


def link_to_dict(link: VisualLink) -> dict[str, Any]:
    return {"id": link.id, "source": link.source, "target": link.target, "type": link.type}


def dumps_timeline(data: TimelineData, format: OutputFormat = "json") -> str:
    payload = timeline_to_dict(data)
    if format == "yaml":
        return yaml.safe_dump(payload, sort_keys=False, default_flow_style=False, allow_unicode=True)
    return json.dumps(payload, indent=2)


def dump_timeline(data: TimelineData, path: str, format: Optional[OutputFormat] = None) -> None:
    """Write a timeline to ``path``; the format defaults to the file suffix."""

    p = Path(path)
    if format is None:
        format = "yaml" if p.suffix.lower() in {".yaml", ".yml"} else "json"
    if str(p.parent) not in (".", ""):
        p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(dumps_timeline(data, format), encoding="utf-8")
