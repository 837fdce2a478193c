from __future__ import annotations

from collections import Counter
from typing import Any, Iterator, Optional

from plan_timeline.core.errors import PlanValidationError
from plan_timeline.core.model import UNRESOLVED


# Timeline lint rules. Lint runs on the raw document and never blocks rendering
# on its own; the CLI reports lint and validation findings together.
# - L_DUPLICATE_ID: duplicate item IDs
# - L_EMPTY_SUMMARY: items should have a non-blank summary (it is the bar label)
# - L_SELF_DEPENDENCY: item depends on itself
# - L_DEPENDENCY_CYCLE: dependency cycle exists
# - L_RESOLVED_WITH_FUTURE_ACTIVITY: resolved item still has activity after the plan timestamp


def lint_plan(plan: dict[str, Any]) -> list[PlanValidationError]:
    """Lint a plan.

    Lint runs *in addition to* schema validation. It is allowed to operate on
    partially-invalid inputs (best effort).
    """

    file = _cast_optional_str(plan.get("__file__"))

    items = plan.get("items")
    if not isinstance(items, list):
        # Let validator handle shape.
        return []

    id_to_index: dict[str, int] = {}
    id_to_raw: dict[str, dict[str, Any]] = {}
    ids: list[str] = []

    for i, raw in enumerate(items):
        if not isinstance(raw, dict):
            continue
        iid = raw.get("id")
        if not isinstance(iid, str):
            continue
        ids.append(iid)
        id_to_index.setdefault(iid, i)
        id_to_raw.setdefault(iid, raw)

    errors: list[PlanValidationError] = []

    def add(code: str, message: str, path: str) -> None:
        errors.append(PlanValidationError(code=code, message=message, file=file, path=path))

    # Rule: duplicate IDs
    counts = Counter(ids)
    dupes = {k: v for k, v in counts.items() if v > 1}
    if dupes:
        seen: set[str] = set()
        for i, raw in enumerate(items):
            if not isinstance(raw, dict):
                continue
            iid = raw.get("id")
            if not isinstance(iid, str) or iid not in dupes:
                continue
            if iid not in seen:
                seen.add(iid)
                continue
            add("L_DUPLICATE_ID", f"duplicate item id: {iid} (count={dupes[iid]})", f"items[{i}].id")

    id_to_deps: dict[str, list[str]] = {}
    for iid, raw in id_to_raw.items():
        deps_raw = raw.get("dependencies")
        deps: list[str] = []
        if isinstance(deps_raw, list):
            deps = [d for d in deps_raw if isinstance(d, str)]
        id_to_deps[iid] = deps

    for iid, raw in id_to_raw.items():
        idx = id_to_index[iid]

        summary = raw.get("summary")
        if isinstance(summary, str) and not summary.strip():
            add("L_EMPTY_SUMMARY", "item summary should not be blank", f"items[{idx}].summary")

        if iid in id_to_deps[iid]:
            add("L_SELF_DEPENDENCY", "item depends on itself", f"items[{idx}].dependencies")

    # Rule: resolved items with activity after the plan timestamp
    timestamp = plan.get("timestamp")
    if isinstance(timestamp, int) and not isinstance(timestamp, bool):
        for iid, raw in id_to_raw.items():
            if not _is_resolved(raw.get("resolved")):
                continue
            last_end = _last_activity_end(raw.get("activities"))
            if last_end is not None and last_end > timestamp:
                add(
                    "L_RESOLVED_WITH_FUTURE_ACTIVITY",
                    f"resolved item has activity ending after the plan timestamp ({last_end} > {timestamp})",
                    f"items[{id_to_index[iid]}].activities",
                )

    # Rule: cycle detection
    for iid, msg in _detect_cycles(id_to_deps):
        add("L_DEPENDENCY_CYCLE", msg, f"items[{id_to_index.get(iid, 0)}].dependencies")

    return _sorted(errors)


def _detect_cycles(id_to_deps: dict[str, list[str]]) -> list[tuple[str, str]]:
    """Report each dependency cycle once. Self-dependencies have their own rule."""

    WHITE, GRAY, BLACK = 0, 1, 2
    state: dict[str, int] = {iid: WHITE for iid in id_to_deps.keys()}
    emitted: set[str] = set()
    out: list[tuple[str, str]] = []

    for start in list(state.keys()):
        if state[start] != WHITE:
            continue
        state[start] = GRAY
        path: list[str] = [start]
        stack: list[Iterator[str]] = [iter(id_to_deps.get(start, []))]
        while stack:
            v = next(stack[-1], None)
            if v is None:
                stack.pop()
                state[path.pop()] = BLACK
                continue
            if v not in state or v == path[-1]:
                continue
            if state[v] == GRAY:
                cycle = path[path.index(v):] + [v]
                key = "->".join(cycle)
                if key not in emitted:
                    emitted.add(key)
                    out.append((path[-1], "dependency cycle detected: " + " -> ".join(cycle)))
            elif state[v] == WHITE:
                state[v] = GRAY
                path.append(v)
                stack.append(iter(id_to_deps.get(v, [])))

    return out


def _is_resolved(v: Any) -> bool:
    if isinstance(v, bool):
        return v
    return isinstance(v, int) and v < UNRESOLVED


def _last_activity_end(activities: Any) -> Optional[int]:
    if not isinstance(activities, list) or not activities:
        return None
    last = activities[-1]
    if not isinstance(last, dict):
        return None
    end = last.get("end")
    return end if isinstance(end, int) and not isinstance(end, bool) else None


def _sorted(errors: list[PlanValidationError]) -> list[PlanValidationError]:
    return sorted(errors, key=lambda e: (e.file or "", e.path or "", e.code))


def _cast_optional_str(v: Any) -> Optional[str]:
    return v if isinstance(v, str) else None
