from __future__ import annotations

from typing import Iterable, Mapping, Optional
from urllib.parse import urljoin

from plan_timeline.core.config.settings import Settings, UserInfo
from plan_timeline.core.errors import PreconditionError
from plan_timeline.core.model import UNKNOWN_ORDINAL, Contributor, PlanningItem


ContributorDirectory = Mapping[str, Contributor]


def build_contributor_directory(
    settings: Settings, items: Iterable[PlanningItem]
) -> dict[str, Contributor]:
    """Map every assignee id mentioned by the plan to a contributor.

    Ordinals:
      - configured contributors: their position in ``settings.contributors``
      - other known users: user position + number of configured contributors
      - ids found nowhere: UNKNOWN_ORDINAL (sorts last)

    Empty ids stand for an unknown assignee and are skipped.
    """

    users: dict[str, tuple[int, UserInfo]] = {}
    for index, user in enumerate(settings.users):
        users.setdefault(user.id, (index, user))
    configured = {c.id: (ordinal, c) for ordinal, c in enumerate(settings.contributors)}

    directory: dict[str, Contributor] = {}

    def add(cid: str) -> None:
        if not cid or cid in directory:
            return

        user = users.get(cid)
        name = user[1].full_name if user else None
        avatar_url = _avatar_url(settings.base_url, user[1]) if user else None

        if cid in configured:
            ordinal, contributor = configured[cid]
            if contributor.external:
                directory[cid] = Contributor(
                    id=cid, ordinal=ordinal, name=contributor.name, is_external=True
                )
            else:
                directory[cid] = Contributor(
                    id=cid, ordinal=ordinal, name=name, avatar_url=avatar_url
                )
            return

        ordinal = user[0] + len(settings.contributors) if user else UNKNOWN_ORDINAL
        directory[cid] = Contributor(id=cid, ordinal=ordinal, name=name, avatar_url=avatar_url)

    for item in items:
        add(item.assignee)
        for activity in item.activities:
            for assignee in activity.assignees:
                add(assignee)

    return directory


def assignees_to_contributors(
    assignees: Iterable[str], directory: ContributorDirectory
) -> tuple[Contributor, ...]:
    """Resolve assignee ids and sort them by ordinal.

    Empty ids are historic activities without a known assignee and are dropped.
    The sort is stable, so equal ordinals keep their input order.
    """

    out: list[Contributor] = []
    for assignee in assignees:
        if not assignee:
            continue
        contributor = directory.get(assignee)
        if contributor is None:
            raise PreconditionError(
                code="E_UNKNOWN_CONTRIBUTOR",
                message=f"assignee missing from contributor directory: {assignee}",
                path="contributors",
            )
        out.append(contributor)
    return tuple(sorted(out, key=lambda c: c.ordinal))


def _avatar_url(base_url: str, user: UserInfo) -> Optional[str]:
    if not user.avatar_url:
        return None
    # Absolute paths keep only the origin of base_url.
    return urljoin(base_url, user.avatar_url) if base_url else user.avatar_url
