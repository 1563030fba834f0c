"""Structural validation of role definitions against a tenant's configuration."""

import re

from app.core.exceptions import ValidationException
from app.models.role import Role, RolesConfiguration

HEX_COLOR = re.compile(r"^#[0-9A-Fa-f]{6}$")
MAX_NAME_LENGTH = 100
MAX_DESCRIPTION_LENGTH = 500


class RoleValidator:
    """
    Checks a candidate Role against the roles configuration it would join.

    Every rule is evaluated; violations are collected and raised together in
    a single ValidationException.
    """

    def __init__(self, roles_configuration: RolesConfiguration):
        self.roles_configuration = roles_configuration

    def violations(
        self,
        candidate: Role,
        existing: Role | None = None,
        active_holders: int = 0,
    ) -> list[str]:
        """
        List every rule the candidate breaks.

        Args:
            candidate: Role as it would be stored
            existing: Stored role being updated, None on creation
            active_holders: Active members currently holding the role

        Returns:
            Human-readable violations, empty when the role is valid
        """
        errors: list[str] = []
        name = candidate.name.strip()

        if not name:
            errors.append("Role name is required")
        elif len(name) > MAX_NAME_LENGTH:
            errors.append(f"Role name must be at most {MAX_NAME_LENGTH} characters")
        elif self._name_taken(name, exclude_id=candidate.id):
            errors.append(f"A role named '{name}' already exists")

        if existing is not None and not existing.can_be_renamed and name != existing.name:
            errors.append(f"Role '{existing.name}' cannot be renamed")

        if len(candidate.description) > MAX_DESCRIPTION_LENGTH:
            errors.append(f"Description must be at most {MAX_DESCRIPTION_LENGTH} characters")

        if not candidate.permissions:
            errors.append("A role needs at least one permission")
        for permission_id in self.roles_configuration.catalog.unknown(candidate.permissions):
            errors.append(f"Unknown permission id: {permission_id}")

        if not HEX_COLOR.match(candidate.color or ""):
            errors.append(f"Color must be a hex code like #3B82F6, got '{candidate.color}'")

        if candidate.is_unique and active_holders > 1:
            errors.append(
                f"Role is held by {active_holders} active members and cannot be made unique"
            )

        return errors

    def validate(
        self,
        candidate: Role,
        existing: Role | None = None,
        active_holders: int = 0,
    ) -> None:
        """
        Raises:
            ValidationException: Listing every violation found
        """
        errors = self.violations(candidate, existing=existing, active_holders=active_holders)
        if errors:
            raise ValidationException(errors)

    def _name_taken(self, name: str, exclude_id: str) -> bool:
        folded = name.casefold()
        return any(
            role.name.strip().casefold() == folded
            for role in self.roles_configuration.roles
            if role.id != exclude_id
        )
