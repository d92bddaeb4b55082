"""
Role-to-action authorization, consulted by the mutation gateway before any
backend call. The backend remains the actual trust boundary: these checks
only avoid sending requests that are bound to be refused.
"""

import enum

from .. import config
from .models import Resource, Session


class Action(enum.Enum):
    CREATE = "create"
    UPDATE_FIELD = "update_field"
    UPDATE_STATUS = "update_status"
    DELETE = "delete"
    ASSIGN = "assign"
    LIST_OFFICERS = "list_officers"


ELEVATED_ACTIONS = {Action.UPDATE_STATUS, Action.ASSIGN, Action.LIST_OFFICERS}
STANDARD_ACTIONS = {Action.CREATE}
AUTHORED_ACTIONS = {Action.UPDATE_FIELD, Action.DELETE}


def is_elevated(role: str | None) -> bool:
    return bool(role) and role in config.ELEVATED_ROLES


def is_standard(role: str | None) -> bool:
    return is_elevated(role) or (bool(role) and role in config.STANDARD_ROLES)


def author_of(resource: Resource | None, author_field: str | None) -> str | None:
    if not resource or not author_field:
        return None
    author = resource.get(author_field)
    # populated references come back as objects, raw ones as ids
    if isinstance(author, dict):
        author = author.get("_id", author.get("id"))
    return str(author) if author is not None else None


def can_perform(
    role: str | None,
    action: Action,
    *,
    session: Session | None = None,
    resource: Resource | None = None,
    author_field: str | None = None,
) -> bool:
    """Whether `role` may perform `action`.

    Editing and deletion are also allowed to the record's original author,
    which needs the session identity and the current copy of the record.
    Field edits on resources without an author are open to standard roles.
    """
    if not role:
        return False
    if action in ELEVATED_ACTIONS:
        return is_elevated(role)
    if action in STANDARD_ACTIONS:
        return is_standard(role)
    if action in AUTHORED_ACTIONS:
        if is_elevated(role):
            return True
        if action == Action.UPDATE_FIELD and not author_field:
            return is_standard(role)
        author = author_of(resource, author_field)
        return session is not None and author is not None and author == session.identity
    return False
