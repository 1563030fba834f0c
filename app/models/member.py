"""Association member model carrying roles and permission overrides."""

from dataclasses import dataclass, field, replace
from datetime import datetime, UTC
from enum import Enum as PyEnum


def utcnow() -> datetime:
    return datetime.now(UTC)


class MemberStatus(str, PyEnum):
    ACTIVE = "active"
    SUSPENDED = "suspended"
    PENDING = "pending"
    INACTIVE = "inactive"


@dataclass(frozen=True)
class CustomPermissions:
    """
    Per-member overrides of the role-derived permission set.

    A permission id is never in both lists: granting removes it from
    `revoked` and revoking removes it from `granted`.
    """

    granted: tuple[str, ...] = ()
    revoked: tuple[str, ...] = ()

    def grant(self, permission_id: str) -> "CustomPermissions":
        granted = self.granted if permission_id in self.granted else self.granted + (permission_id,)
        revoked = tuple(p for p in self.revoked if p != permission_id)
        return CustomPermissions(granted=granted, revoked=revoked)

    def revoke(self, permission_id: str) -> "CustomPermissions":
        revoked = self.revoked if permission_id in self.revoked else self.revoked + (permission_id,)
        granted = tuple(p for p in self.granted if p != permission_id)
        return CustomPermissions(granted=granted, revoked=revoked)

    def clear(self, permission_id: str) -> "CustomPermissions":
        return CustomPermissions(
            granted=tuple(p for p in self.granted if p != permission_id),
            revoked=tuple(p for p in self.revoked if p != permission_id),
        )


@dataclass(frozen=True)
class Member:
    """
    A user's membership record within one association.

    `assigned_roles` is ordered and duplicate-free. `is_admin` mirrors the
    association's `admin_member_id` and only changes through admin transfer.

    Example members of association "Amicale des Anciens":
    - member 1, is_admin=True, no roles (the creator)
    - member 2, assigned_roles=("tresorier",)
    - member 3, assigned_roles=("secretaire",), custom_permissions.granted=("documents.validate",)
    """

    id: int
    user_id: int
    association_id: int
    section_id: int | None = None
    is_admin: bool = False
    assigned_roles: tuple[str, ...] = ()
    custom_permissions: CustomPermissions = field(default_factory=CustomPermissions)
    member_type: str = "membre_actif"
    status: MemberStatus = MemberStatus.ACTIVE
    joined_at: datetime = field(default_factory=utcnow)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def is_active(self) -> bool:
        return self.status == MemberStatus.ACTIVE

    def holds(self, role_id: str) -> bool:
        return role_id in self.assigned_roles

    def touch(self, **changes) -> "Member":
        """Return a copy with `changes` applied and `updated_at` refreshed."""
        return replace(self, updated_at=utcnow(), **changes)

    def __repr__(self) -> str:
        return (
            f"<Member(id={self.id}, association_id={self.association_id}, "
            f"is_admin={self.is_admin}, roles={list(self.assigned_roles)})>"
        )
