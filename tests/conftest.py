import os

# Settings are read at import time; point them at throwaway backends first
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("LOG_TO_FILE", "false")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("CELERY_BROKER_URL", "memory://")
os.environ.setdefault("CELERY_RESULT_BACKEND", "cache+memory://")
os.environ.setdefault("CELERY_TASK_ALWAYS_EAGER", "true")

import pytest
from datetime import date
from typing import AsyncGenerator, Callable, Dict, List, Tuple
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from main import app
from guardforce.api.dependencies import get_approval_notifier
from guardforce.core.database import get_async_session
from guardforce.core.security import create_access_token
from guardforce.models import Base, Profile
from guardforce.models.shared.enums import UserRole
from guardforce.schemas.auth.profile_schema import AuthContext
from guardforce.services.approval.approval_service import ApprovalService
from guardforce.services.notification.approval_notifier import ApprovalNotifier

ORG_ID = "org-alpha"
OTHER_ORG_ID = "org-beta"


class RecordingNotifier(ApprovalNotifier):
    """Captures approval events instead of sending them to the broker"""

    def __init__(self):
        self.events: List[Tuple[str, str, str]] = []

    def _publish(self, event, request, module):
        self.events.append((event, request.id, module))


def make_ctx(profile: Profile) -> AuthContext:
    return AuthContext(user_id=profile.id, role=profile.role, org_id=profile.org_id, full_name=profile.full_name)


def guard_payload(cnic: str = "35202-1234567-1", **overrides) -> Dict:
    payload = {
        "first_name": "Asif",
        "last_name": "Khan",
        "father_name": "Rashid Khan",
        "cnic": cnic,
        "date_of_birth": date(1990, 5, 17),
        "phone": "0300-1234567",
        "basic_salary": "32000",
        "employment_start_date": date(2026, 1, 1),
    }
    payload.update(overrides)
    return payload


@pytest.fixture
async def engine():
    test_engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await test_engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    async with session_maker() as db_session:
        yield db_session


@pytest.fixture
async def profiles(session) -> Dict[str, Profile]:
    """One active profile per role in ORG_ID, plus an admin of another tenant"""
    created = {}
    for role in UserRole:
        created[role.value] = Profile(
            org_id=ORG_ID,
            full_name=f"{role.value.replace('_', ' ').title()} User",
            email=f"{role.value}@guardforce.test",
            role=role,
            is_active=True,
        )
    created["outsider"] = Profile(
        org_id=OTHER_ORG_ID,
        full_name="Other Tenant Admin",
        email="admin@other.test",
        role=UserRole.SYSTEM_ADMIN,
        is_active=True,
    )
    created["inactive"] = Profile(
        org_id=ORG_ID,
        full_name="Former Manager",
        email="former@guardforce.test",
        role=UserRole.REGIONAL_MANAGER,
        is_active=False,
    )
    session.add_all(created.values())
    await session.commit()
    return created


@pytest.fixture
def ctx_for(profiles) -> Callable[[str], AuthContext]:
    # built up front: a rollback in the shared session expires the Profile rows
    contexts = {key: make_ctx(profile) for key, profile in profiles.items()}
    return contexts.__getitem__


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def approval_service(session, notifier) -> ApprovalService:
    return ApprovalService(session, notifier=notifier)


@pytest.fixture
async def client(session_maker, notifier) -> AsyncGenerator[AsyncClient, None]:
    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_maker() as db_session:
            yield db_session

    app.dependency_overrides[get_async_session] = override_get_db
    app.dependency_overrides[get_approval_notifier] = lambda: notifier

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(profiles) -> Callable[[str], Dict[str, str]]:
    """Bearer headers for the profile stored under `key` (a role value, 'outsider' or 'inactive')"""
    tokens = {key: create_access_token(profile.id) for key, profile in profiles.items()}

    def _headers(key: str) -> Dict[str, str]:
        return {"Authorization": f"Bearer {tokens[key]}"}
    return _headers


@pytest.fixture
def guard_data() -> Callable[..., Dict]:
    return guard_payload
