from dataclasses import dataclass


class AssociationRBACException(Exception):
    """Base exception for the association RBAC engine"""

    pass


class UnauthorizedException(AssociationRBACException):
    """Raised when the request carries no verified member identity"""

    pass


class NotFoundException(AssociationRBACException):
    """Raised when a member, role, permission or custom role is unknown"""

    pass


class ForbiddenException(AssociationRBACException):
    """Raised when the acting member lacks the permission for an operation"""

    pass


class ValidationException(AssociationRBACException):
    """
    Raised for business validation errors.

    Carries every violation found, never only the first one, so callers can
    show all problems at once.
    """

    def __init__(self, violations: list[str] | str):
        if isinstance(violations, str):
            violations = [violations]
        self.violations = list(violations)
        super().__init__("; ".join(self.violations))


class UniqueRoleConflictException(AssociationRBACException):
    """Raised when a unique role is already held by another active member"""

    def __init__(self, role_id: str, holder_member_id: int):
        self.role_id = role_id
        self.holder_member_id = holder_member_id
        super().__init__(
            f"Role '{role_id}' is unique and already held by member {holder_member_id}"
        )


class RoleInUseException(AssociationRBACException):
    """Raised when deleting a mandatory role that still has active holders"""

    def __init__(self, role_id: str, holder_ids: list[int]):
        self.role_id = role_id
        self.holder_ids = list(holder_ids)
        super().__init__(
            f"Role '{role_id}' is mandatory and still held by members "
            f"{self.holder_ids}; reassign them first"
        )


class InvalidStateException(AssociationRBACException):
    """Raised when an operation does not apply to the current state"""

    pass


class ConcurrencyConflictException(AssociationRBACException):
    """Raised when a write was computed against a stale version"""

    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Version mismatch (expected {expected}, found {actual}); please retry"
        )


class MandatoryRoleViolationException(AssociationRBACException):
    """Raised instead of a warning when the mandatory role policy is 'block'"""

    def __init__(self, violation: "MandatoryRoleViolation"):
        self.violation = violation
        super().__init__(violation.message)


@dataclass(frozen=True)
class MandatoryRoleViolation:
    """Non-blocking warning: a mandatory role is left without an active holder."""

    role_id: str
    role_name: str

    @property
    def message(self) -> str:
        return f"Mandatory role '{self.role_name}' no longer has any active holder"
