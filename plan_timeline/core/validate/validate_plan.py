from __future__ import annotations

from typing import Any, Callable, Iterable, Optional, cast

from plan_timeline.core.errors import PlanValidationError
from plan_timeline.core.model import UNRESOLVED, ActivityInterval, PlanDocument, PlanningItem
from plan_timeline.core.timeline.forest import find_parent_cycles


_ErrFn = Callable[[str, str, str], None]


def _is_list_of_str(v: Any) -> bool:
    return isinstance(v, list) and all(isinstance(x, str) for x in v)


def _is_int(v: Any) -> bool:
    return isinstance(v, int) and not isinstance(v, bool)


def validate_plan(plan: dict[str, Any]) -> tuple[Optional[PlanDocument], list[PlanValidationError]]:
    """Validate a plan document and build its planning items.

    Returns (document, errors). Document is None when errors exist.
    """

    file = cast(Optional[str], plan.get("__file__"))
    errors: list[PlanValidationError] = []

    def err(code: str, message: str, path: str) -> None:
        errors.append(PlanValidationError(code=code, message=message, file=file, path=path))

    schema_version = plan.get("schema_version")
    if not isinstance(schema_version, str) or not schema_version.strip():
        err("E_REQUIRED_FIELD", "schema_version is required and must be a non-empty string", "schema_version")

    timestamp = plan.get("timestamp")
    if not _is_int(timestamp):
        err("E_REQUIRED_FIELD", "timestamp is required and must be an integer", "timestamp")

    raw_items = plan.get("items")
    if not isinstance(raw_items, list):
        err("E_REQUIRED_FIELD", "items is required and must be an array", "items")
        return None, _sorted(errors)

    items: list[PlanningItem] = []
    index_by_id: dict[str, int] = {}

    for i, raw in enumerate(raw_items):
        item_path = f"items[{i}]"
        if not isinstance(raw, dict):
            err("E_INVALID_TYPE", "item must be an object", item_path)
            continue

        iid = raw.get("id")
        if not isinstance(iid, str) or not iid.strip():
            err("E_REQUIRED_FIELD", "id is required and must be a non-empty string", f"{item_path}.id")
            continue

        if iid in index_by_id:
            err("E_DUPLICATE_ID", f"duplicate item id: {iid}", f"{item_path}.id")
            continue
        index_by_id[iid] = i

        if "/" in iid:
            err(
                "E_RESERVED_ID_CHAR",
                f"item id must not contain '/', which is reserved for generated task ids: {iid}",
                f"{item_path}.id",
            )
            continue

        summary = raw.get("summary")
        if not isinstance(summary, str):
            err("E_REQUIRED_FIELD", "summary is required and must be a string", f"{item_path}.summary")
            continue

        parent = raw.get("parent")
        if parent is not None and not isinstance(parent, str):
            err("E_INVALID_TYPE", "parent must be a string", f"{item_path}.parent")
            continue

        resolved = raw.get("resolved")
        if resolved is None or resolved is False:
            resolved_ts = UNRESOLVED
        elif resolved is True:
            resolved_ts = 0
        elif _is_int(resolved):
            resolved_ts = cast(int, resolved)
        else:
            err("E_INVALID_TYPE", "resolved must be a boolean or an integer timestamp", f"{item_path}.resolved")
            continue

        assignee = raw.get("assignee")
        if assignee is not None and not isinstance(assignee, str):
            err("E_INVALID_TYPE", "assignee must be a string", f"{item_path}.assignee")
            continue

        custom_fields = raw.get("custom_fields")
        if custom_fields is not None and not (
            isinstance(custom_fields, dict)
            and all(isinstance(k, str) and isinstance(v, str) for k, v in custom_fields.items())
        ):
            err("E_INVALID_TYPE", "custom_fields must map strings to strings", f"{item_path}.custom_fields")
            continue

        deps = raw.get("dependencies")
        if deps is not None and not _is_list_of_str(deps):
            err("E_INVALID_TYPE", "dependencies must be an array of strings", f"{item_path}.dependencies")
            continue

        activities = _validate_activities(raw.get("activities"), f"{item_path}.activities", err)
        if activities is None:
            continue

        items.append(
            PlanningItem(
                id=iid,
                summary=summary,
                parent_id=parent or "",
                resolved=resolved_ts,
                assignee=assignee or "",
                activities=tuple(activities),
                dependency_ids=tuple(cast(list[str], deps or [])),
                custom_fields=dict(custom_fields or {}),
            )
        )

    # Referential integrity checks.
    known = set(index_by_id)
    for item in items:
        idx = index_by_id[item.id]
        if item.parent_id and item.parent_id not in known:
            err("E_UNKNOWN_PARENT", f"parent references unknown id: {item.parent_id}", f"items[{idx}].parent")
        for di, dep in enumerate(item.dependency_ids):
            if dep not in known:
                err(
                    "E_UNKNOWN_DEPENDENCY",
                    f"dependencies references unknown id: {dep}",
                    f"items[{idx}].dependencies[{di}]",
                )

    for cycle in find_parent_cycles({item.id: item.parent_id for item in items}):
        err(
            "E_PARENT_CYCLE",
            "parent cycle detected: " + " -> ".join(cycle + [cycle[0]]),
            f"items[{index_by_id[cycle[0]]}].parent",
        )

    if errors:
        return None, _sorted(errors)

    document = PlanDocument(
        schema_version=cast(str, schema_version),
        timestamp=cast(int, timestamp),
        items=items,
    )
    return document, []


def _validate_activities(raw: Any, path: str, err: _ErrFn) -> Optional[list[ActivityInterval]]:
    """Check one item's activity intervals: well-formed, sorted and non-overlapping."""

    if raw is None:
        return []
    if not isinstance(raw, list):
        err("E_INVALID_TYPE", "activities must be an array", path)
        return None

    out: list[ActivityInterval] = []
    ok = True
    for ai, a in enumerate(raw):
        a_path = f"{path}[{ai}]"
        if not isinstance(a, dict):
            err("E_INVALID_TYPE", "activity must be an object", a_path)
            ok = False
            continue
        start, end = a.get("start"), a.get("end")
        if not _is_int(start) or not _is_int(end):
            err("E_REQUIRED_FIELD", "start and end are required and must be integers", a_path)
            ok = False
            continue
        assignees = a.get("assignees", [])
        if not _is_list_of_str(assignees):
            err("E_INVALID_TYPE", "assignees must be an array of strings", f"{a_path}.assignees")
            ok = False
            continue
        waiting = a.get("waiting", False)
        if not isinstance(waiting, bool):
            err("E_INVALID_TYPE", "waiting must be a boolean", f"{a_path}.waiting")
            ok = False
            continue
        if end < start:
            err("E_INTERVAL_REVERSED", f"end ({end}) is before start ({start})", a_path)
            ok = False
            continue
        if out and start < out[-1].end:
            err(
                "E_INTERVAL_ORDER",
                "activities must be sorted by start and must not overlap",
                a_path,
            )
            ok = False
            continue
        out.append(
            ActivityInterval(
                start=start,
                end=end,
                assignees=tuple(dict.fromkeys(assignees)),
                is_waiting=waiting,
            )
        )
    return out if ok else None


def summarize_plan(document: PlanDocument) -> str:
    roots = [item.id for item in document.items if not item.parent_id]
    activity_count = sum(len(item.activities) for item in document.items)
    dependency_count = sum(len(item.dependency_ids) for item in document.items)
    return (
        f"OK: {len(document.items)} items ("
        + f"activities={activity_count}, dependencies={dependency_count})"
        + "\nRoots: "
        + ", ".join(roots)
    )


def _sorted(errors: Iterable[PlanValidationError]) -> list[PlanValidationError]:
    return sorted(
        list(errors),
        key=lambda e: (
            e.file or "",
            e.path or "",
            e.code,
        ),
    )
