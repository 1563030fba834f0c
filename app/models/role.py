"""Role model and per-tenant roles configuration."""

from dataclasses import dataclass, field, replace
from enum import Enum as PyEnum

from app.models.permission import Permission, PermissionCatalog


@dataclass(frozen=True)
class Role:
    """
    Named, assignable bundle of permissions configured by an association.

    Flags:
    - is_unique: at most one active member may hold the role (e.g. President)
    - is_mandatory: at least one member should hold the role
    - can_be_renamed: whether the name may change after creation

    Instances are immutable; updates produce a new Role via dataclasses.replace.
    """

    id: str
    name: str
    description: str = ""
    permissions: tuple[str, ...] = ()
    is_unique: bool = False
    is_mandatory: bool = False
    can_be_renamed: bool = True
    color: str = "#6B7280"
    icon: str | None = None

    def __repr__(self) -> str:
        return f"<Role(id='{self.id}', name='{self.name}', permissions={len(self.permissions)})>"


@dataclass(frozen=True)
class RolesConfiguration:
    """
    One per tenant: the role definitions and the permission catalog.

    `version` is bumped by every structural role mutation and doubles as
    an optimistic-concurrency token for callers editing roles.
    """

    catalog: PermissionCatalog
    roles: tuple[Role, ...] = ()
    version: int = 1

    @property
    def available_permissions(self) -> list[Permission]:
        return list(self.catalog)

    def get_role(self, role_id: str) -> Role | None:
        for role in self.roles:
            if role.id == role_id:
                return role
        return None

    def role_ids(self) -> set[str]:
        return {role.id for role in self.roles}

    def with_roles(self, roles: tuple[Role, ...]) -> "RolesConfiguration":
        """Return a new configuration with `roles` and a bumped version."""
        return replace(self, roles=roles, version=self.version + 1)


class RoleTemplateCategory(str, PyEnum):
    BUREAU = "bureau"
    GESTION = "gestion"
    OPERATIONNEL = "operationnel"


@dataclass(frozen=True)
class RoleTemplate:
    """Suggested role used for quick creation."""

    id: str
    name: str
    description: str
    suggested_permissions: tuple[str, ...]
    category: RoleTemplateCategory
    icon: str
    color: str
    is_unique: bool = False
    is_mandatory: bool = False

    def to_role(self) -> Role:
        return Role(
            id=self.id,
            name=self.name,
            description=self.description,
            permissions=self.suggested_permissions,
            is_unique=self.is_unique,
            is_mandatory=self.is_mandatory,
            color=self.color,
            icon=self.icon,
        )


DEFAULT_ROLE_TEMPLATES: tuple[RoleTemplate, ...] = (
    RoleTemplate(
        id="president",
        name="Président",
        description="Direction générale de l'association",
        suggested_permissions=(
            "administration.modify_settings",
            "membres.manage_members",
            "finances.validate_expenses",
            "finances.view_treasury",
            "evenements.create",
            "documents.manage",
        ),
        category=RoleTemplateCategory.BUREAU,
        icon="Crown",
        color="#EF4444",
        is_unique=True,
        is_mandatory=True,
    ),
    RoleTemplate(
        id="tresorier",
        name="Trésorier",
        description="Gestion financière et comptabilité",
        suggested_permissions=(
            "finances.validate_expenses",
            "finances.view_treasury",
            "finances.manage_budgets",
            "finances.export_data",
        ),
        category=RoleTemplateCategory.BUREAU,
        icon="Wallet",
        color="#10B981",
        is_unique=True,
        is_mandatory=True,
    ),
    RoleTemplate(
        id="secretaire",
        name="Secrétaire",
        description="Gestion administrative et documents",
        suggested_permissions=(
            "documents.manage",
            "evenements.create",
            "membres.view_list",
            "administration.view_reports",
        ),
        category=RoleTemplateCategory.BUREAU,
        icon="FileText",
        color="#3B82F6",
        is_unique=True,
        is_mandatory=True,
    ),
    RoleTemplate(
        id="coordinateur",
        name="Coordinateur",
        description="Coordination des activités",
        suggested_permissions=(
            "evenements.create",
            "membres.view_list",
            "evenements.view_attendance",
            "finances.view_treasury",
        ),
        category=RoleTemplateCategory.GESTION,
        icon="Users",
        color="#8B5CF6",
    ),
)


@dataclass(frozen=True)
class RoleUsage:
    """Role enriched with its number of active holders."""

    role: Role
    members_count: int = 0
    holder_ids: tuple[int, ...] = field(default=())
