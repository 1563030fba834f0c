"""Org-chart title model. Descriptive only, never grants permissions."""

from dataclasses import dataclass, field
from datetime import datetime

from app.models.member import utcnow


@dataclass(frozen=True)
class CustomRole:
    id: int
    name: str
    description: str = ""
    assigned_to: int | None = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def __repr__(self) -> str:
        return f"<CustomRole(id={self.id}, name='{self.name}', assigned_to={self.assigned_to})>"
