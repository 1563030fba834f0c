import pytest

from app.config import settings
from app.core.events import RoleEventType
from app.core.exceptions import (
    MandatoryRoleViolationException,
    NotFoundException,
    UniqueRoleConflictException,
    ValidationException,
)
from app.models.member import MemberStatus
from app.schemas.role_schemas import RoleUpdate
from tests.conftest import CREATE_EVENTS, MANAGE_DOCUMENTS, MANAGE_MEMBERS, VIEW_MEMBERS, VIEW_TREASURY


class TestAssignRoles:
    """MemberRoleService.assign_roles is a full replacement"""

    def test_assign_roles(self, member_role_service, association, members, recorder):
        assignment = member_role_service.assign_roles(association.id, members["alice"], ["secretaire", "animateur"])

        assert assignment.member.assigned_roles == ("secretaire", "animateur")
        assert assignment.added == ["secretaire", "animateur"]
        assert assignment.removed == []
        assert [e.role_id for e in recorder.of_type(RoleEventType.ROLE_ASSIGNED)] == ["secretaire", "animateur"]

    def test_full_replacement_removes_unlisted_roles(self, member_role_service, association, members, recorder):
        """Roles missing from the list are removed, not kept"""
        member_role_service.assign_roles(association.id, members["alice"], ["secretaire", "animateur"])

        assignment = member_role_service.assign_roles(association.id, members["alice"], ["animateur"])

        assert assignment.member.assigned_roles == ("animateur",)
        assert assignment.added == []
        assert assignment.removed == ["secretaire"]
        assert [e.role_id for e in recorder.of_type(RoleEventType.ROLE_REMOVED)] == ["secretaire"]

    def test_empty_list_clears_roles(self, member_role_service, association, members):
        member_role_service.assign_roles(association.id, members["alice"], ["animateur"])

        assignment = member_role_service.assign_roles(association.id, members["alice"], [])

        assert assignment.member.assigned_roles == ()

    def test_duplicates_collapsed(self, member_role_service, association, members):
        assignment = member_role_service.assign_roles(
            association.id, members["alice"], ["animateur", "secretaire", "animateur"]
        )

        assert assignment.member.assigned_roles == ("animateur", "secretaire")

    def test_unknown_role_rejected(self, member_role_service, association, members):
        with pytest.raises(NotFoundException) as exc_info:
            member_role_service.assign_roles(association.id, members["alice"], ["animateur", "ghost"])

        assert "ghost" in str(exc_info.value)
        assert member_role_service.get_member_roles(association.id, members["alice"]).member.assigned_roles == ()

    def test_unknown_member(self, member_role_service, association):
        with pytest.raises(NotFoundException):
            member_role_service.assign_roles(association.id, 999, ["animateur"])

    def test_member_of_other_association_is_unknown(self, member_role_service, association, other_association):
        """Member ids are scoped to their own association"""
        with pytest.raises(NotFoundException):
            member_role_service.assign_roles(association.id, other_association.admin_member_id, ["animateur"])

    def test_updated_at_refreshed(self, member_role_service, association, members):
        before = member_role_service.get_member_roles(association.id, members["alice"]).member.updated_at

        assignment = member_role_service.assign_roles(association.id, members["alice"], ["animateur"])

        assert assignment.member.updated_at >= before


class TestUniqueRoles:
    """A unique role has at most one active holder"""

    def test_unique_role_conflict(self, member_role_service, association, members, recorder):
        """Assigning a held unique role names the holder and changes nothing"""
        member_role_service.assign_roles(association.id, members["alice"], ["president"])
        recorder.events.clear()

        with pytest.raises(UniqueRoleConflictException) as exc_info:
            member_role_service.assign_roles(association.id, members["bob"], ["president", "animateur"])

        assert exc_info.value.holder_member_id == members["alice"]
        assert exc_info.value.role_id == "president"
        bob = member_role_service.get_member_roles(association.id, members["bob"]).member
        alice = member_role_service.get_member_roles(association.id, members["alice"]).member
        assert bob.assigned_roles == ()
        assert alice.assigned_roles == ("president",)
        assert recorder.events == []

    def test_reassigning_to_current_holder_is_allowed(self, member_role_service, association, members):
        member_role_service.assign_roles(association.id, members["alice"], ["president"])

        assignment = member_role_service.assign_roles(association.id, members["alice"], ["president", "animateur"])

        assert assignment.member.assigned_roles == ("president", "animateur")

    def test_inactive_holder_does_not_block(
        self, member_role_service, association_service, association, members
    ):
        """Only active holders count for uniqueness"""
        member_role_service.assign_roles(association.id, members["alice"], ["president"])
        association_service.change_member_status(association.id, members["alice"], MemberStatus.INACTIVE)

        assignment = member_role_service.assign_roles(association.id, members["bob"], ["president"])

        assert assignment.member.assigned_roles == ("president",)

    def test_reactivation_blocked_by_new_holder(
        self, member_role_service, association_service, association, members
    ):
        member_role_service.assign_roles(association.id, members["alice"], ["president"])
        association_service.change_member_status(association.id, members["alice"], MemberStatus.SUSPENDED)
        member_role_service.assign_roles(association.id, members["bob"], ["president"])

        with pytest.raises(UniqueRoleConflictException):
            association_service.change_member_status(association.id, members["alice"], MemberStatus.ACTIVE)

    def test_same_role_in_two_associations(
        self, member_role_service, association_service, association, other_association, members
    ):
        """Uniqueness is per association"""
        member_role_service.assign_roles(association.id, members["alice"], ["president"])
        outsider = association_service.add_member(other_association.id, user_id=201)

        assignment = member_role_service.assign_roles(other_association.id, outsider.id, ["president"])

        assert assignment.member.assigned_roles == ("president",)


class TestRemoveRole:
    """MemberRoleService.remove_role"""

    def test_remove_role(self, member_role_service, association, members, recorder):
        member_role_service.assign_roles(association.id, members["alice"], ["secretaire", "animateur"])

        assignment = member_role_service.remove_role(association.id, members["alice"], "secretaire")

        assert assignment.member.assigned_roles == ("animateur",)
        assert assignment.removed == ["secretaire"]
        assert assignment.warnings == []
        assert recorder.of_type(RoleEventType.ROLE_REMOVED)[-1].role_id == "secretaire"

    def test_remove_role_not_held(self, member_role_service, association, members):
        with pytest.raises(NotFoundException):
            member_role_service.remove_role(association.id, members["alice"], "secretaire")


class TestMandatoryRoles:
    """Removing the last holder of a mandatory role"""

    def test_last_holder_removed_warns(self, member_role_service, association, members):
        """The change goes through and a warning is attached"""
        member_role_service.assign_roles(association.id, members["alice"], ["tresorier"])

        assignment = member_role_service.remove_role(association.id, members["alice"], "tresorier")

        assert assignment.member.assigned_roles == ()
        assert [w.role_id for w in assignment.warnings] == ["tresorier"]
        assert "Trésorier" in assignment.warnings[0].message

    def test_replacement_without_mandatory_role_warns(self, member_role_service, association, members):
        member_role_service.assign_roles(association.id, members["alice"], ["tresorier"])

        assignment = member_role_service.assign_roles(association.id, members["alice"], ["animateur"])

        assert [w.role_id for w in assignment.warnings] == ["tresorier"]

    def test_no_warning_when_another_holder_remains(self, member_role_service, association, members, role_service):
        role_service.update_role(association.id, "tresorier", RoleUpdate(is_unique=False))
        member_role_service.assign_roles(association.id, members["alice"], ["tresorier"])
        member_role_service.assign_roles(association.id, members["bob"], ["tresorier"])

        assignment = member_role_service.remove_role(association.id, members["alice"], "tresorier")

        assert assignment.warnings == []

    def test_block_policy(self, member_role_service, association, members, monkeypatch):
        """With the blocking policy the removal is refused and nothing changes"""
        member_role_service.assign_roles(association.id, members["alice"], ["tresorier"])
        monkeypatch.setattr(settings, "MANDATORY_ROLE_POLICY", "block")

        with pytest.raises(MandatoryRoleViolationException) as exc_info:
            member_role_service.remove_role(association.id, members["alice"], "tresorier")

        assert exc_info.value.violation.role_id == "tresorier"
        alice = member_role_service.get_member_roles(association.id, members["alice"]).member
        assert alice.assigned_roles == ("tresorier",)

    def test_suspending_last_holder_warns(
        self, member_role_service, association_service, association, members
    ):
        """A suspended holder no longer fills the role"""
        member_role_service.assign_roles(association.id, members["alice"], ["tresorier"])

        change = association_service.change_member_status(association.id, members["alice"], MemberStatus.SUSPENDED)

        assert change.member.status == MemberStatus.SUSPENDED
        assert [w.role_id for w in change.warnings] == ["tresorier"]
        assert not member_role_service.bureau_completeness(association.id).is_complete

    def test_suspending_last_holder_blocked(
        self, member_role_service, association_service, association, members, monkeypatch
    ):
        member_role_service.assign_roles(association.id, members["alice"], ["tresorier"])
        monkeypatch.setattr(settings, "MANDATORY_ROLE_POLICY", "block")

        with pytest.raises(MandatoryRoleViolationException) as exc_info:
            association_service.change_member_status(association.id, members["alice"], MemberStatus.SUSPENDED)

        assert exc_info.value.violation.role_id == "tresorier"
        assert association_service.get_member(association.id, members["alice"]).status == MemberStatus.ACTIVE
        assert member_role_service.bureau_completeness(association.id).filled == 1

    def test_status_change_between_inactive_states_does_not_warn(
        self, member_role_service, association_service, association, members, monkeypatch
    ):
        member_role_service.assign_roles(association.id, members["alice"], ["tresorier"])
        association_service.change_member_status(association.id, members["alice"], MemberStatus.SUSPENDED)
        monkeypatch.setattr(settings, "MANDATORY_ROLE_POLICY", "block")

        change = association_service.change_member_status(association.id, members["alice"], MemberStatus.INACTIVE)

        assert change.warnings == []

    def test_bureau_completeness(self, member_role_service, association, members):
        bureau = member_role_service.bureau_completeness(association.id)
        assert bureau.total == 2
        assert bureau.filled == 0
        assert not bureau.is_complete

        member_role_service.assign_roles(association.id, members["alice"], ["president"])
        member_role_service.assign_roles(association.id, members["bob"], ["tresorier"])

        bureau = member_role_service.bureau_completeness(association.id)
        assert bureau.filled == 2
        assert bureau.is_complete


class TestPermissionOverrides:
    """Grant, revoke and clear on a single member"""

    def test_grant_then_revoke(self, member_role_service, authorization_service, association, members, recorder):
        """Granting then revoking leaves the permission absent"""
        member_role_service.grant_permission(association.id, members["alice"], MANAGE_MEMBERS)
        assert authorization_service.has_permission(association.id, members["alice"], MANAGE_MEMBERS)

        member = member_role_service.revoke_permission(association.id, members["alice"], MANAGE_MEMBERS)

        assert member.custom_permissions.granted == ()
        assert member.custom_permissions.revoked == (MANAGE_MEMBERS,)
        assert not authorization_service.has_permission(association.id, members["alice"], MANAGE_MEMBERS)
        assert len(recorder.of_type(RoleEventType.PERMISSION_GRANTED)) == 1
        assert len(recorder.of_type(RoleEventType.PERMISSION_REVOKED)) == 1

    def test_revoke_then_grant(self, member_role_service, authorization_service, association, members):
        member_role_service.assign_roles(association.id, members["alice"], ["secretaire"])
        member_role_service.revoke_permission(association.id, members["alice"], VIEW_MEMBERS)

        member = member_role_service.grant_permission(association.id, members["alice"], VIEW_MEMBERS)

        assert member.custom_permissions.revoked == ()
        assert authorization_service.has_permission(association.id, members["alice"], VIEW_MEMBERS)

    def test_revoke_role_permission(self, member_role_service, authorization_service, association, members):
        member_role_service.assign_roles(association.id, members["alice"], ["secretaire"])

        member_role_service.revoke_permission(association.id, members["alice"], MANAGE_DOCUMENTS)

        assert authorization_service.get_effective_permissions(association.id, members["alice"]) == {VIEW_MEMBERS}

    def test_clear_override_restores_role_permission(
        self, member_role_service, authorization_service, association, members
    ):
        member_role_service.assign_roles(association.id, members["alice"], ["secretaire"])
        member_role_service.revoke_permission(association.id, members["alice"], MANAGE_DOCUMENTS)

        member = member_role_service.clear_permission_override(association.id, members["alice"], MANAGE_DOCUMENTS)

        assert member.custom_permissions.revoked == ()
        assert authorization_service.has_permission(association.id, members["alice"], MANAGE_DOCUMENTS)

    def test_grant_twice_is_idempotent(self, member_role_service, association, members):
        member_role_service.grant_permission(association.id, members["alice"], CREATE_EVENTS)

        member = member_role_service.grant_permission(association.id, members["alice"], CREATE_EVENTS)

        assert member.custom_permissions.granted == (CREATE_EVENTS,)

    def test_unknown_permission_rejected(self, member_role_service, association, members):
        with pytest.raises(ValidationException) as exc_info:
            member_role_service.grant_permission(association.id, members["alice"], "finances.typo")

        assert exc_info.value.violations == ["Unknown permission id: finances.typo"]

    def test_overrides_do_not_leak_to_other_members(
        self, member_role_service, authorization_service, association, members
    ):
        member_role_service.grant_permission(association.id, members["alice"], VIEW_TREASURY)

        assert not authorization_service.has_permission(association.id, members["bob"], VIEW_TREASURY)


class TestAuthorizationService:
    """Read-side checks never raise for unknown subjects"""

    def test_unknown_association_or_member_denied(self, authorization_service, association):
        assert not authorization_service.has_permission(999, 1, VIEW_TREASURY)
        assert not authorization_service.has_permission(association.id, 999, VIEW_TREASURY)

    def test_admin_has_everything(self, authorization_service, association, members):
        assert authorization_service.has_permission(association.id, members["admin"], MANAGE_MEMBERS)
        assert len(authorization_service.get_effective_permissions(association.id, members["admin"])) == 20

    def test_get_member_roles_details(self, member_role_service, association, members):
        member_role_service.assign_roles(association.id, members["alice"], ["tresorier"])
        member_role_service.grant_permission(association.id, members["alice"], CREATE_EVENTS)

        details = member_role_service.get_member_roles(association.id, members["alice"])

        assert [r.id for r in details.assigned_roles] == ["tresorier"]
        assert details.custom_permissions.granted == (CREATE_EVENTS,)
        assert CREATE_EVENTS in details.effective_permissions
