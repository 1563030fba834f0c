"""Permission catalog for role-based access control."""

from dataclasses import dataclass
from enum import Enum as PyEnum
from typing import Iterable, Iterator


class PermissionCategory(str, PyEnum):
    """Functional area a permission belongs to."""

    FINANCES = "finances"
    MEMBRES = "membres"
    ADMINISTRATION = "administration"
    DOCUMENTS = "documents"
    EVENEMENTS = "evenements"


class PermissionId(str, PyEnum):
    """
    Permission ids of the default catalog installed at tenant bootstrap.

    Ids are prefixed with their category. Code that checks a permission
    should reference a member of this enum rather than a string literal so
    that a typo fails at import time instead of silently denying access.
    """

    MEMBRES_VIEW_LIST = "membres.view_list"
    MEMBRES_MANAGE_MEMBERS = "membres.manage_members"
    MEMBRES_APPROVE_MEMBERS = "membres.approve_members"
    MEMBRES_VIEW_DETAILS = "membres.view_details"
    MEMBRES_EXPORT_DATA = "membres.export_data"

    FINANCES_VIEW_TREASURY = "finances.view_treasury"
    FINANCES_MANAGE_BUDGETS = "finances.manage_budgets"
    FINANCES_VALIDATE_EXPENSES = "finances.validate_expenses"
    FINANCES_CREATE_INCOME = "finances.create_income"
    FINANCES_EXPORT_DATA = "finances.export_data"

    ADMINISTRATION_MANAGE_ROLES = "administration.manage_roles"
    ADMINISTRATION_MODIFY_SETTINGS = "administration.modify_settings"
    ADMINISTRATION_VIEW_REPORTS = "administration.view_reports"
    ADMINISTRATION_MANAGE_SECTIONS = "administration.manage_sections"

    DOCUMENTS_UPLOAD = "documents.upload"
    DOCUMENTS_MANAGE = "documents.manage"
    DOCUMENTS_VALIDATE = "documents.validate"

    EVENEMENTS_CREATE = "evenements.create"
    EVENEMENTS_MANAGE = "evenements.manage"
    EVENEMENTS_VIEW_ATTENDANCE = "evenements.view_attendance"


@dataclass(frozen=True)
class Permission:
    """Immutable catalog entry."""

    id: str
    name: str
    category: PermissionCategory
    description: str = ""


class PermissionCatalog:
    """
    Closed, tenant-scoped set of permissions.

    The catalog is supplied once at tenant bootstrap and never changes
    afterwards. Every mutation boundary validates permission ids against it.
    """

    def __init__(self, permissions: Iterable[Permission]):
        self._by_id: dict[str, Permission] = {}
        for permission in permissions:
            if permission.id in self._by_id:
                raise ValueError(f"Duplicate permission id in catalog: {permission.id}")
            self._by_id[permission.id] = permission

    def __contains__(self, permission_id: "str | PermissionId") -> bool:
        return as_permission_id(permission_id) in self._by_id

    def __iter__(self) -> Iterator[Permission]:
        return iter(self._by_id.values())

    def __len__(self) -> int:
        return len(self._by_id)

    @property
    def ids(self) -> frozenset[str]:
        return frozenset(self._by_id)

    def get(self, permission_id: str) -> Permission | None:
        return self._by_id.get(as_permission_id(permission_id))

    def unknown(self, permission_ids: Iterable[str]) -> list[str]:
        """Return the ids not present in the catalog, in input order."""
        seen: set[str] = set()
        missing = []
        for permission_id in map(as_permission_id, permission_ids):
            if permission_id not in self._by_id and permission_id not in seen:
                seen.add(permission_id)
                missing.append(permission_id)
        return missing

    def grouped(self) -> dict[PermissionCategory, list[Permission]]:
        """Catalog entries grouped by category, every category present."""
        grouped: dict[PermissionCategory, list[Permission]] = {
            category: [] for category in PermissionCategory
        }
        for permission in self._by_id.values():
            grouped[permission.category].append(permission)
        return grouped


def _p(permission_id: PermissionId, name: str, description: str) -> Permission:
    category = PermissionCategory(permission_id.value.split(".", 1)[0])
    return Permission(
        id=permission_id.value, name=name, category=category, description=description
    )


DEFAULT_PERMISSIONS: tuple[Permission, ...] = (
    _p(PermissionId.MEMBRES_VIEW_LIST, "View members", "See the member list"),
    _p(PermissionId.MEMBRES_MANAGE_MEMBERS, "Manage members", "Add, edit and remove members"),
    _p(PermissionId.MEMBRES_APPROVE_MEMBERS, "Approve members", "Approve membership requests"),
    _p(PermissionId.MEMBRES_VIEW_DETAILS, "View member details", "See member contact details"),
    _p(PermissionId.MEMBRES_EXPORT_DATA, "Export members", "Export the member list"),
    _p(PermissionId.FINANCES_VIEW_TREASURY, "View treasury", "See balances and transactions"),
    _p(PermissionId.FINANCES_MANAGE_BUDGETS, "Manage budgets", "Create and edit budgets"),
    _p(PermissionId.FINANCES_VALIDATE_EXPENSES, "Validate expenses", "Approve expense requests"),
    _p(PermissionId.FINANCES_CREATE_INCOME, "Record income", "Record income and cotisations"),
    _p(PermissionId.FINANCES_EXPORT_DATA, "Export finances", "Export financial reports"),
    _p(PermissionId.ADMINISTRATION_MANAGE_ROLES, "Manage roles", "Create roles and assign them"),
    _p(PermissionId.ADMINISTRATION_MODIFY_SETTINGS, "Modify settings", "Change association settings"),
    _p(PermissionId.ADMINISTRATION_VIEW_REPORTS, "View reports", "See activity reports"),
    _p(PermissionId.ADMINISTRATION_MANAGE_SECTIONS, "Manage sections", "Create and edit sections"),
    _p(PermissionId.DOCUMENTS_UPLOAD, "Upload documents", "Upload documents"),
    _p(PermissionId.DOCUMENTS_MANAGE, "Manage documents", "Edit and delete documents"),
    _p(PermissionId.DOCUMENTS_VALIDATE, "Validate documents", "Validate uploaded documents"),
    _p(PermissionId.EVENEMENTS_CREATE, "Create events", "Create events"),
    _p(PermissionId.EVENEMENTS_MANAGE, "Manage events", "Edit and cancel events"),
    _p(PermissionId.EVENEMENTS_VIEW_ATTENDANCE, "View attendance", "See event attendance"),
)


def default_catalog() -> PermissionCatalog:
    return PermissionCatalog(DEFAULT_PERMISSIONS)


def as_permission_id(value: "str | PermissionId") -> str:
    """Plain string id for a catalog lookup.

    Enum members hash by name, not value, so they must be unwrapped before
    being tested against a set of string ids.
    """
    if isinstance(value, PyEnum):
        return value.value
    return value
