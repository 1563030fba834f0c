"""Association (tenant) aggregate."""

from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Iterable, Mapping

from app.models.custom_role import CustomRole
from app.models.member import Member
from app.models.role import RolesConfiguration


@dataclass(frozen=True)
class Association:
    """
    Multi-tenant isolation boundary and unit of atomic change.

    An association owns its roles configuration, its members and its
    org-chart titles. Nothing is shared across associations.

    The aggregate is an immutable snapshot: a mutation builds a new
    Association and the repository swaps it in as a whole, so a reader
    holding a snapshot never observes a half-applied change.

    `admin_member_id` is the single authoritative admin designation.
    `revision` is bumped by every committed mutation.
    """

    id: int
    name: str
    admin_member_id: int
    roles_configuration: RolesConfiguration
    members: Mapping[int, Member] = field(default_factory=lambda: MappingProxyType({}))
    custom_roles: Mapping[int, CustomRole] = field(default_factory=lambda: MappingProxyType({}))
    revision: int = 0

    def get_member(self, member_id: int) -> Member | None:
        return self.members.get(member_id)

    def active_members(self) -> list[Member]:
        return [m for m in self.members.values() if m.is_active]

    def active_holders(self, role_id: str) -> list[Member]:
        return [m for m in self.members.values() if m.is_active and m.holds(role_id)]

    def with_members(self, updated: Iterable[Member]) -> "Association":
        members = dict(self.members)
        for member in updated:
            members[member.id] = member
        return replace(self, members=MappingProxyType(members))

    def with_custom_roles(self, custom_roles: Mapping[int, CustomRole]) -> "Association":
        return replace(self, custom_roles=MappingProxyType(dict(custom_roles)))

    def __repr__(self) -> str:
        return (
            f"<Association(id={self.id}, name='{self.name}', "
            f"admin_member_id={self.admin_member_id}, revision={self.revision})>"
        )
