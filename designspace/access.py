# access.py
"""
Access decisions for projects, designs and templates.

``authorize`` is a pure function: it looks at who owns a resource, who
collaborates on it and whether it is public, and returns ``Allowed`` (with
the caller's effective role) or ``Denied`` (with the error to surface).
Nothing here touches the database; ``enforce`` turns a denial into the
matching API error.

A private resource the caller has no relationship with is reported as
not found, so its existence is never confirmed to outsiders. Once the caller
can see the resource (collaborator, or public) a refused operation is a 403.
"""

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Union

from designspace.errors import APIError, Forbidden, InvalidState, NotFound, SubscriptionRequired, Unauthenticated
from designspace.models import Design, Project, Template, User
from designspace.tiers import can_access, plan_of


class Role(str, Enum):
    VIEWER = "viewer"
    EDITOR = "editor"
    ADMIN = "admin"


ROLE_RANK = {Role.VIEWER: 1, Role.EDITOR: 2, Role.ADMIN: 3}


def role_rank(role) -> int:
    return ROLE_RANK[Role(role)]


class Operation(str, Enum):
    READ = "read"
    DUPLICATE = "duplicate"
    CREATE_DESIGN = "create_design"
    UPDATE = "update"
    DELETE = "delete"
    MANAGE_COLLABORATORS = "manage_collaborators"
    REMOVE_COLLABORATOR = "remove_collaborator"


REQUIRED_ROLE = {
    Operation.READ: Role.VIEWER,
    Operation.DUPLICATE: Role.VIEWER,
    Operation.CREATE_DESIGN: Role.VIEWER,
    Operation.UPDATE: Role.EDITOR,
    Operation.DELETE: Role.EDITOR,
    Operation.MANAGE_COLLABORATORS: Role.ADMIN,
    Operation.REMOVE_COLLABORATOR: Role.ADMIN,
}


@dataclass(frozen=True)
class Allowed:
    effective_role: Role

    def __bool__(self) -> bool:
        return True


@dataclass(frozen=True)
class Denied:
    reason: str
    error: type = Forbidden
    extra: Dict[str, Optional[str]] = field(default_factory=dict)

    def __bool__(self) -> bool:
        return False


Decision = Union[Allowed, Denied]


@dataclass(frozen=True)
class AccessView:
    """The slice of a resource the policy needs."""
    kind: str
    owner_id: uuid.UUID
    collaborators: Dict[uuid.UUID, str]
    is_public: bool


def project_view(project: Project) -> AccessView:
    return AccessView(
        kind="project",
        owner_id=project.owner_id,
        collaborators={c.user_id: c.role for c in project.collaborators},
        is_public=bool(project.is_public),
    )


def design_view(design: Design, project: Project) -> AccessView:
    """Designs inherit ownership and collaborators from their project, but not its visibility."""
    return AccessView(
        kind="design",
        owner_id=project.owner_id,
        collaborators={c.user_id: c.role for c in project.collaborators},
        is_public=bool(design.is_public),
    )


def authorize(
    resource: AccessView,
    user: Optional[User],
    operation: Operation,
    target_user_id: Optional[uuid.UUID] = None,
) -> Decision:
    operation = Operation(operation)
    user_id = user.id if user is not None else None

    is_owner = user_id is not None and resource.owner_id == user_id
    role = resource.collaborators.get(user_id) if user_id is not None else None
    if not is_owner and role is None:
        if resource.is_public:
            if operation is Operation.READ:
                return Allowed(Role.VIEWER)
            if user_id is None:
                return Denied("Authentication required", Unauthenticated)
            return Denied("Access denied")
        return Denied(f"{resource.kind.capitalize()} not found", NotFound)

    # Only checked once the caller is known to belong to the resource.
    if operation is Operation.REMOVE_COLLABORATOR and target_user_id == user_id:
        return Denied("You cannot remove yourself from the project", InvalidState)

    if is_owner:
        return Allowed(Role.ADMIN)

    # Deleting a project belongs to its owner alone, whatever the role.
    if operation is Operation.DELETE and resource.kind == "project":
        return Denied("Only project owners can delete projects")

    required = REQUIRED_ROLE[operation]
    if role_rank(role) >= role_rank(required):
        return Allowed(Role(role))
    return Denied(f"{required.value} role required")


def authorize_template(template: Template, user: Optional[User]) -> Decision:
    """Templates are gated by plan rather than by ownership."""
    required = template.required_subscription
    if can_access(plan_of(user), required):
        return Allowed(Role.VIEWER)
    if user is None:
        return Denied(
            "Please sign in to access this template",
            SubscriptionRequired,
            {"requiredPlan": required, "currentPlan": plan_of(None)},
        )
    return Denied(
        "Upgrade your subscription to access this template",
        SubscriptionRequired,
        {"requiredPlan": required, "currentPlan": user.subscription_plan},
    )


def enforce(decision: Decision) -> Role:
    """Returns the effective role, or raises the API error the denial names."""
    if isinstance(decision, Allowed):
        return decision.effective_role
    if decision.error is SubscriptionRequired:
        raise SubscriptionRequired(
            decision.extra.get("requiredPlan"), decision.extra.get("currentPlan"), decision.reason
        )
    error: APIError = decision.error(decision.reason)
    raise error
