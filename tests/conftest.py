import pytest
from fastapi.testclient import TestClient

from app.core.events import EventBus, RoleEvent, RoleEventType
from app.dependencies import get_event_bus, get_repository
from app.models.permission import PermissionId
from app.models.role import Role
from app.repositories.association_repository import AssociationRepository
from app.services.admin_service import AdminService
from app.services.association_service import AssociationService
from app.services.authorization_service import AuthorizationService
from app.services.custom_role_service import CustomRoleService
from app.services.member_role_service import MemberRoleService
from app.services.role_service import RoleService
# Import FastAPI app AFTER service imports
from app.main import app

VIEW_TREASURY = PermissionId.FINANCES_VIEW_TREASURY.value
VALIDATE_EXPENSES = PermissionId.FINANCES_VALIDATE_EXPENSES.value
MANAGE_MEMBERS = PermissionId.MEMBRES_MANAGE_MEMBERS.value
VIEW_MEMBERS = PermissionId.MEMBRES_VIEW_LIST.value
MANAGE_ROLES = PermissionId.ADMINISTRATION_MANAGE_ROLES.value
MODIFY_SETTINGS = PermissionId.ADMINISTRATION_MODIFY_SETTINGS.value
MANAGE_DOCUMENTS = PermissionId.DOCUMENTS_MANAGE.value
CREATE_EVENTS = PermissionId.EVENEMENTS_CREATE.value

# Bureau of a typical association
BUREAU_ROLES = (
    Role(
        id="president",
        name="Président",
        permissions=(MANAGE_ROLES, MODIFY_SETTINGS, MANAGE_MEMBERS, VIEW_TREASURY),
        is_unique=True,
        is_mandatory=True,
        can_be_renamed=False,
        color="#EF4444",
    ),
    Role(
        id="tresorier",
        name="Trésorier",
        permissions=(VIEW_TREASURY, VALIDATE_EXPENSES),
        is_unique=True,
        is_mandatory=True,
        color="#10B981",
    ),
    Role(
        id="secretaire",
        name="Secrétaire",
        permissions=(VIEW_MEMBERS, MANAGE_DOCUMENTS),
        color="#3B82F6",
    ),
    Role(
        id="animateur",
        name="Animateur",
        permissions=(CREATE_EVENTS,),
        color="#8B5CF6",
    ),
)


class RecordingListener:
    """Listener keeping every event it receives"""

    def __init__(self):
        self.events: list[RoleEvent] = []

    def __call__(self, event: RoleEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: RoleEventType) -> list[RoleEvent]:
        return [e for e in self.events if e.type == event_type]


def member_headers(member_id: int) -> dict[str, str]:
    """Identity headers as set by the gateway for an authenticated member"""
    return {"X-Member-Id": str(member_id)}


@pytest.fixture(scope="function")
def repository():
    """Fresh in-memory store for each test"""
    return AssociationRepository()


@pytest.fixture(scope="function")
def event_bus():
    return EventBus()


@pytest.fixture
def recorder(event_bus):
    """Listener capturing every published role event"""
    listener = RecordingListener()
    event_bus.subscribe(listener)
    return listener


@pytest.fixture
def association_service(repository, event_bus):
    return AssociationService(repository, event_bus)


@pytest.fixture
def role_service(repository, event_bus):
    return RoleService(repository, event_bus)


@pytest.fixture
def member_role_service(repository, event_bus):
    return MemberRoleService(repository, event_bus)


@pytest.fixture
def admin_service(repository, event_bus):
    return AdminService(repository, event_bus)


@pytest.fixture
def custom_role_service(repository, event_bus):
    return CustomRoleService(repository, event_bus)


@pytest.fixture
def authorization_service(repository):
    return AuthorizationService(repository)


@pytest.fixture
def association(association_service):
    """Association bootstrapped with the bureau roles; the creator is admin"""
    return association_service.bootstrap("Amicale des Anciens", admin_user_id=100, roles=BUREAU_ROLES)


@pytest.fixture
def members(association, association_service):
    """
    Member ids by name.

    - admin: creator of the association, no roles
    - alice, bob, carol: active members without roles
    """
    ids = {"admin": association.admin_member_id}
    for user_id, name in enumerate(("alice", "bob", "carol"), start=101):
        ids[name] = association_service.add_member(association.id, user_id=user_id).id
    return ids


@pytest.fixture
def other_association(association_service):
    """Second tenant, to check isolation"""
    return association_service.bootstrap("Club de Lecture", admin_user_id=200, roles=BUREAU_ROLES)


@pytest.fixture(scope="function")
def client(repository, event_bus):
    """FastAPI test client bound to the test repository and event bus"""
    app.dependency_overrides[get_repository] = lambda: repository
    app.dependency_overrides[get_event_bus] = lambda: event_bus
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers(members):
    return member_headers(members["admin"])
