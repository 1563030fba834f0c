"""Member context for request authorization."""

from dataclasses import dataclass
from functools import cached_property
from typing import Iterable

from app.models.member import Member
from app.models.permission import PermissionCategory, PermissionId, as_permission_id
from app.models.role import RolesConfiguration
from app.services import permission_resolver


@dataclass(frozen=True)
class MemberContext:
    """
    Complete member context for authorization checks.

    Built from a single association snapshot, so every check made through
    one context sees the same state. The effective set is computed once per
    context; build a new context per request, never reuse one across
    requests.

    The can_* shortcuts are the only place where domain capabilities map to
    permission ids. Call sites (page guards, expense approval, cotisation
    validation) must use them instead of repeating the ids.

    Attributes:
        member: The acting member
        roles_configuration: The member's association roles configuration
    """

    member: Member
    roles_configuration: RolesConfiguration

    @cached_property
    def effective_permissions(self) -> frozenset[str]:
        return permission_resolver.effective_permissions(self.member, self.roles_configuration)

    @property
    def is_admin(self) -> bool:
        return self.member.is_admin

    def has_permission(self, permission_id: str) -> bool:
        return as_permission_id(permission_id) in self.effective_permissions

    def has_any_permission(self, permission_ids: Iterable[str]) -> bool:
        return not self.effective_permissions.isdisjoint(map(as_permission_id, permission_ids))

    def has_all_permissions(self, permission_ids: Iterable[str]) -> bool:
        return self.effective_permissions.issuperset(map(as_permission_id, permission_ids))

    def has_role(self, role_id: str) -> bool:
        return permission_resolver.has_role(self.member, role_id)

    def permissions_by_category(self) -> dict[PermissionCategory, list[str]]:
        return permission_resolver.permissions_by_category(self.member, self.roles_configuration)

    # Members
    def can_view_members(self) -> bool:
        return self.has_permission(PermissionId.MEMBRES_VIEW_LIST)

    def can_manage_members(self) -> bool:
        return self.has_permission(PermissionId.MEMBRES_MANAGE_MEMBERS)

    def can_approve_members(self) -> bool:
        return self.has_permission(PermissionId.MEMBRES_APPROVE_MEMBERS)

    def can_view_member_details(self) -> bool:
        return self.has_permission(PermissionId.MEMBRES_VIEW_DETAILS)

    def can_export_members(self) -> bool:
        return self.has_permission(PermissionId.MEMBRES_EXPORT_DATA)

    # Finances
    def can_view_finances(self) -> bool:
        return self.has_permission(PermissionId.FINANCES_VIEW_TREASURY)

    def can_manage_budgets(self) -> bool:
        return self.has_permission(PermissionId.FINANCES_MANAGE_BUDGETS)

    def can_validate_expenses(self) -> bool:
        return self.has_permission(PermissionId.FINANCES_VALIDATE_EXPENSES)

    def can_create_income(self) -> bool:
        return self.has_permission(PermissionId.FINANCES_CREATE_INCOME)

    def can_export_financial_data(self) -> bool:
        return self.has_permission(PermissionId.FINANCES_EXPORT_DATA)

    def can_manage_finances(self) -> bool:
        """Treasury access plus budget management."""
        return self.has_all_permissions(
            (PermissionId.FINANCES_VIEW_TREASURY, PermissionId.FINANCES_MANAGE_BUDGETS)
        )

    def can_validate_cotisations(self) -> bool:
        """Cotisations are income; recording or validating expenses both qualify."""
        return self.has_any_permission(
            (PermissionId.FINANCES_CREATE_INCOME, PermissionId.FINANCES_VALIDATE_EXPENSES)
        )

    # Administration
    def can_manage_roles(self) -> bool:
        return self.has_permission(PermissionId.ADMINISTRATION_MANAGE_ROLES)

    def can_modify_settings(self) -> bool:
        return self.has_permission(PermissionId.ADMINISTRATION_MODIFY_SETTINGS)

    def can_view_reports(self) -> bool:
        return self.has_permission(PermissionId.ADMINISTRATION_VIEW_REPORTS)

    def can_manage_sections(self) -> bool:
        return self.has_permission(PermissionId.ADMINISTRATION_MANAGE_SECTIONS)

    # Documents
    def can_upload_documents(self) -> bool:
        return self.has_permission(PermissionId.DOCUMENTS_UPLOAD)

    def can_manage_documents(self) -> bool:
        return self.has_permission(PermissionId.DOCUMENTS_MANAGE)

    def can_validate_documents(self) -> bool:
        return self.has_permission(PermissionId.DOCUMENTS_VALIDATE)

    # Events
    def can_create_events(self) -> bool:
        return self.has_permission(PermissionId.EVENEMENTS_CREATE)

    def can_manage_events(self) -> bool:
        return self.has_permission(PermissionId.EVENEMENTS_MANAGE)

    def can_view_attendance(self) -> bool:
        return self.has_permission(PermissionId.EVENEMENTS_VIEW_ATTENDANCE)

    def __repr__(self) -> str:
        return (
            f"<MemberContext(member_id={self.member.id}, "
            f"association_id={self.member.association_id}, is_admin={self.member.is_admin})>"
        )
