"""
Effective permission resolution.

Pure functions over a Member and its association's RolesConfiguration.
Nothing here mutates state, takes a lock, or raises on inconsistent data:
an authorization check must always produce an answer.

Precedence, highest first:
    1. admin bypass (the whole catalog)
    2. custom revoked
    3. custom granted
    4. permissions of assigned roles
"""

from typing import Iterable

from app.models.member import Member
from app.models.permission import PermissionCategory, as_permission_id
from app.models.role import Role, RolesConfiguration


def effective_permissions(
    member: Member, roles_configuration: RolesConfiguration
) -> frozenset[str]:
    """
    Compute a member's effective permission set.

    Args:
        member: Member whose permissions are resolved
        roles_configuration: The member's association roles configuration

    Returns:
        Deduplicated set of permission ids
    """
    if member.is_admin:
        return roles_configuration.catalog.ids

    permissions: set[str] = set()
    for role_id in member.assigned_roles:
        role = roles_configuration.get_role(role_id)
        # Dangling reference to a deleted role
        if role is None:
            continue
        permissions.update(role.permissions)

    permissions.update(member.custom_permissions.granted)
    permissions.difference_update(member.custom_permissions.revoked)
    return frozenset(permissions)


def has_permission(
    member: Member, roles_configuration: RolesConfiguration, permission_id: str
) -> bool:
    return as_permission_id(permission_id) in effective_permissions(member, roles_configuration)


def has_any_permission(
    member: Member, roles_configuration: RolesConfiguration, permission_ids: Iterable[str]
) -> bool:
    resolved = effective_permissions(member, roles_configuration)
    return not resolved.isdisjoint(map(as_permission_id, permission_ids))


def has_all_permissions(
    member: Member, roles_configuration: RolesConfiguration, permission_ids: Iterable[str]
) -> bool:
    resolved = effective_permissions(member, roles_configuration)
    return resolved.issuperset(map(as_permission_id, permission_ids))


def permissions_by_category(
    member: Member, roles_configuration: RolesConfiguration
) -> dict[PermissionCategory, list[str]]:
    """
    Group the resolved set by catalog category.

    Ids whose catalog entry no longer exists are dropped. Every category is
    present in the result, possibly with an empty list.
    """
    catalog = roles_configuration.catalog
    grouped: dict[PermissionCategory, list[str]] = {
        category: [] for category in PermissionCategory
    }
    for permission_id in sorted(effective_permissions(member, roles_configuration)):
        permission = catalog.get(permission_id)
        if permission is None:
            continue
        grouped[permission.category].append(permission_id)
    return grouped


def assigned_role_details(
    member: Member, roles_configuration: RolesConfiguration
) -> list[Role]:
    """Roles the member holds, in assignment order, dangling ids dropped."""
    roles = (roles_configuration.get_role(role_id) for role_id in member.assigned_roles)
    return [role for role in roles if role is not None]


def has_role(member: Member, role_id: str) -> bool:
    return role_id in member.assigned_roles


def has_any_role(member: Member, role_ids: Iterable[str]) -> bool:
    return any(role_id in member.assigned_roles for role_id in role_ids)


def has_all_roles(member: Member, role_ids: Iterable[str]) -> bool:
    return all(role_id in member.assigned_roles for role_id in role_ids)
