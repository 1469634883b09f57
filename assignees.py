"""Static assignee roster. Tasks store an id into it with no integrity check."""

from dataclasses import dataclass, asdict
from typing import Iterable, Optional

UNASSIGNED = "Unassigned"
UNKNOWN = "Unknown"
PLACEHOLDER_AVATAR = ""


@dataclass(frozen=True)
class Assignee:
    id: str
    name: str
    avatar: str
    email: Optional[str] = None


ROSTER: tuple[Assignee, ...] = (
    Assignee("1", "John Doe", "https://i.pravatar.cc/150?img=1", "john.doe@company.com"),
    Assignee("2", "Jane Smith", "https://i.pravatar.cc/150?img=2", "jane.smith@company.com"),
    Assignee("3", "Mike Johnson", "https://i.pravatar.cc/150?img=3", "mike.johnson@company.com"),
    Assignee("4", "Sarah Williams", "https://i.pravatar.cc/150?img=4", "sarah.williams@company.com"),
    Assignee("5", "Alex Chen", "https://i.pravatar.cc/150?img=5", "alex.chen@company.com"),
    Assignee("6", "Emily Rodriguez", "https://i.pravatar.cc/150?img=6", "emily.rodriguez@company.com"),
)

_BY_ID = {a.id: a for a in ROSTER}


def get_assignee(assignee_id: Optional[str]) -> Optional[Assignee]:
    if not assignee_id:
        return None
    return _BY_ID.get(assignee_id)


def get_assignees(ids: Iterable[str]) -> list[Assignee]:
    wanted = set(ids or ())
    return [a for a in ROSTER if a.id in wanted]


def assignee_name(assignee_id: Optional[str]) -> str:
    if not assignee_id:
        return UNASSIGNED
    found = _BY_ID.get(assignee_id)
    return found.name if found else UNKNOWN


def describe_assignee(assignee_id: Optional[str]) -> dict:
    """Display data for a task card; unknown ids degrade to a placeholder."""
    found = get_assignee(assignee_id)
    if found:
        return asdict(found)
    return {"id": assignee_id, "name": assignee_name(assignee_id), "avatar": PLACEHOLDER_AVATAR, "email": None}
