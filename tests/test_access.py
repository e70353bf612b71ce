import uuid

import pytest

from designspace.access import (
    AccessView, Allowed, Denied, Operation, Role, authorize, authorize_template, design_view, enforce,
)
from designspace.errors import Forbidden, InvalidState, NotFound, SubscriptionRequired, Unauthenticated
from designspace.models import Design, Project, Template, User


def user(plan="free"):
    return User(id=uuid.uuid4(), email=f"{uuid.uuid4().hex}@example.com", subscription_plan=plan)


OWNER, ADMIN, EDITOR, VIEWER, STRANGER = (user() for _ in range(5))


def project(is_public=False):
    return AccessView(
        kind="project",
        owner_id=OWNER.id,
        collaborators={ADMIN.id: "admin", EDITOR.id: "editor", VIEWER.id: "viewer"},
        is_public=is_public,
    )


class TestOwnership:
    """The owner may do anything, project deletion included."""

    @pytest.mark.parametrize("operation", list(Operation))
    def test_owner_allowed_everything(self, operation):
        decision = authorize(project(), OWNER, operation)
        assert isinstance(decision, Allowed)
        assert decision.effective_role is Role.ADMIN

    def test_admin_collaborator_cannot_delete_project(self):
        decision = authorize(project(), ADMIN, Operation.DELETE)
        assert isinstance(decision, Denied)
        assert decision.error is Forbidden

    def test_editor_can_delete_design(self):
        view = AccessView(kind="design", owner_id=OWNER.id, collaborators={EDITOR.id: "editor"}, is_public=False)
        assert authorize(view, EDITOR, Operation.DELETE)


class TestRoleHierarchy:
    @pytest.mark.parametrize(
        "who, operation, allowed",
        [
            (VIEWER, Operation.READ, True),
            (VIEWER, Operation.DUPLICATE, True),
            (VIEWER, Operation.CREATE_DESIGN, True),
            (VIEWER, Operation.UPDATE, False),
            (EDITOR, Operation.UPDATE, True),
            (EDITOR, Operation.MANAGE_COLLABORATORS, False),
            (ADMIN, Operation.MANAGE_COLLABORATORS, True),
            (ADMIN, Operation.REMOVE_COLLABORATOR, True),
        ],
    )
    def test_required_role(self, who, operation, allowed):
        assert bool(authorize(project(), who, operation)) is allowed

    def test_collaborator_keeps_own_role(self):
        assert authorize(project(), EDITOR, Operation.READ).effective_role is Role.EDITOR


class TestVisibility:
    def test_private_project_hidden_from_stranger(self):
        decision = authorize(project(), STRANGER, Operation.READ)
        assert decision.error is NotFound

    def test_private_project_hidden_from_anonymous(self):
        assert authorize(project(), None, Operation.READ).error is NotFound

    def test_public_project_readable_by_anyone(self):
        assert authorize(project(is_public=True), None, Operation.READ) == Allowed(Role.VIEWER)
        assert authorize(project(is_public=True), STRANGER, Operation.READ) == Allowed(Role.VIEWER)

    def test_public_project_write_needs_membership(self):
        assert authorize(project(is_public=True), STRANGER, Operation.UPDATE).error is Forbidden
        assert authorize(project(is_public=True), None, Operation.UPDATE).error is Unauthenticated

    def test_private_design_in_public_project_stays_hidden(self):
        parent = Project(owner_id=OWNER.id, is_public=True, collaborators=[])
        view = design_view(Design(is_public=False), parent)
        assert authorize(view, STRANGER, Operation.READ).error is NotFound
        assert authorize(view, None, Operation.READ).error is NotFound
        assert authorize(view, OWNER, Operation.READ)

    def test_public_design_in_private_project_is_readable(self):
        parent = Project(owner_id=OWNER.id, is_public=False, collaborators=[])
        assert authorize(design_view(Design(is_public=True), parent), None, Operation.READ)


class TestCollaboratorRemoval:
    def test_self_removal_is_invalid(self):
        decision = authorize(project(), ADMIN, Operation.REMOVE_COLLABORATOR, target_user_id=ADMIN.id)
        assert decision.error is InvalidState

    def test_admin_removes_someone_else(self):
        assert authorize(project(), ADMIN, Operation.REMOVE_COLLABORATOR, target_user_id=VIEWER.id)

    def test_stranger_self_removal_does_not_reveal_project(self):
        decision = authorize(project(), STRANGER, Operation.REMOVE_COLLABORATOR, target_user_id=STRANGER.id)
        assert decision.error is NotFound


class TestTemplates:
    def test_free_template_open_to_anonymous(self):
        assert authorize_template(Template(required_subscription="free"), None)

    def test_pro_template_denied_to_free_user(self):
        free_user = user("free")
        decision = authorize_template(Template(required_subscription="pro"), free_user)
        assert decision.error is SubscriptionRequired
        assert decision.extra == {"requiredPlan": "pro", "currentPlan": "free"}

    def test_anonymous_denial_names_both_plans(self):
        decision = authorize_template(Template(required_subscription="pro"), None)
        assert decision.error is SubscriptionRequired
        assert decision.extra == {"requiredPlan": "pro", "currentPlan": "free"}

    def test_enterprise_sees_pro(self):
        assert authorize_template(Template(required_subscription="pro"), user("enterprise"))


class TestEnforce:
    def test_returns_role(self):
        assert enforce(Allowed(Role.EDITOR)) is Role.EDITOR

    def test_raises_named_error(self):
        with pytest.raises(NotFound) as exc:
            enforce(Denied("Project not found", NotFound))
        assert exc.value.status_code == 404

    def test_subscription_denial_carries_plans(self):
        with pytest.raises(SubscriptionRequired) as exc:
            enforce(Denied("Upgrade", SubscriptionRequired, {"requiredPlan": "enterprise", "currentPlan": "pro"}))
        assert exc.value.status_code == 403
        assert exc.value.extra == {"requiredPlan": "enterprise", "currentPlan": "pro"}
