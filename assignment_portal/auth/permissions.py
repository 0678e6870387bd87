"""Authorization matrix for every guarded action.

Roles never imply each other: an action is allowed only for the roles listed
against it. Assignment updates and deletes additionally require ownership
unless the caller is an admin (see ``can_manage_assignment``).
"""

from enum import Enum
from typing import Callable

from fastapi import Depends, HTTPException

from assignment_portal.auth.dependencies import get_current_user
from assignment_portal.models.assignment import Assignment
from assignment_portal.models.user import Role, User


class Permission(str, Enum):
    CREATE_ASSIGNMENT = "assignment:create"
    UPDATE_ASSIGNMENT = "assignment:update"
    DELETE_ASSIGNMENT = "assignment:delete"
    SUBMIT_ASSIGNMENT = "assignment:submit"
    LIST_SUBMISSIONS = "submission:list"
    VIEW_STUDENT_STATS = "stats:student"
    VIEW_MONITOR_STATS = "stats:monitor"
    VIEW_ADMIN_STATS = "stats:admin"
    MANAGE_USERS = "user:manage"


PERMISSION_MATRIX: dict[Permission, frozenset[Role]] = {
    Permission.CREATE_ASSIGNMENT: frozenset({Role.MONITOR, Role.ADMIN}),
    Permission.UPDATE_ASSIGNMENT: frozenset({Role.MONITOR, Role.ADMIN}),
    Permission.DELETE_ASSIGNMENT: frozenset({Role.MONITOR, Role.ADMIN}),
    Permission.SUBMIT_ASSIGNMENT: frozenset({Role.STUDENT}),
    Permission.LIST_SUBMISSIONS: frozenset({Role.MONITOR, Role.ADMIN}),
    Permission.VIEW_STUDENT_STATS: frozenset({Role.STUDENT}),
    Permission.VIEW_MONITOR_STATS: frozenset({Role.MONITOR, Role.ADMIN}),
    Permission.VIEW_ADMIN_STATS: frozenset({Role.ADMIN}),
    Permission.MANAGE_USERS: frozenset({Role.ADMIN}),
}

_unmapped = set(Permission) - PERMISSION_MATRIX.keys()
if _unmapped:
    raise RuntimeError(f"Permissions without allowed roles: {sorted(p.value for p in _unmapped)}")


def role_of(user: User) -> Role | None:
    try:
        return Role(user.role)
    except ValueError:
        return None


def is_allowed(user: User, permission: Permission) -> bool:
    return role_of(user) in PERMISSION_MATRIX[permission]


def require_permission(permission: Permission) -> Callable[..., User]:
    def guard(current_user: User = Depends(get_current_user)) -> User:
        if not is_allowed(current_user, permission):
            raise HTTPException(status_code=403, detail="Not authorized for this action")
        return current_user

    return guard


def can_manage_assignment(user: User, assignment: Assignment) -> bool:
    return role_of(user) is Role.ADMIN or assignment.created_by == user.id
