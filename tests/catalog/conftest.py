from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest
from httpx import ASGITransport, AsyncClient

from src.catalog.api.dependencies import get_catalog_service
from src.catalog.domain.models.guideline import (
    Guideline,
    InlineContent,
    MedicalSpeciality,
    RemoteContent,
)
from src.catalog.domain.models.user import Identity, UserRole
from src.catalog.infra.db.inmemory import InMemoryGuidelineRepository
from src.catalog.infra.storage.objects import InMemoryObjectStore
from src.catalog.main import app
from src.catalog.security import Caller, identity_provider
from src.catalog.services.catalog.service import GuidelineCatalogService

ADMIN = Identity(id="admin-1", role=UserRole.ADMIN, email="admin@guidelinesync.com", trust_name="System")
CLINICIAN = Identity(
    id="clin-1",
    role=UserRole.CLINICIAN,
    email="clinician@stgeorges.nhs.uk",
    trust_name="St George's Hospital",
)

BASE_TIME = datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)


class TickingClock:
    """Deterministic clock advancing one second per reading."""

    def __init__(self, start=BASE_TIME):
        self.now = start

    def __call__(self):
        self.now += timedelta(seconds=1)
        return self.now


@pytest.fixture
def repository():
    return InMemoryGuidelineRepository()


@pytest.fixture
def object_store():
    return InMemoryObjectStore()


@pytest.fixture
def service(repository, object_store):
    return GuidelineCatalogService(repository, object_store, clock=TickingClock())


@pytest.fixture
def admin():
    return Caller.for_identity(ADMIN)


@pytest.fixture
def clinician():
    return Caller.for_identity(CLINICIAN)


@pytest.fixture
def anonymous():
    return Caller.anonymous()


@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {identity_provider.issue(ADMIN)}"}


@pytest.fixture
def clinician_headers():
    return {"Authorization": f"Bearer {identity_provider.issue(CLINICIAN)}"}


@pytest.fixture
def make_guideline():
    """Build Guideline records directly, bypassing the service."""

    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        minutes = overrides.pop("minutes", counter["n"])
        stamp = BASE_TIME + timedelta(minutes=minutes)
        text = overrides.pop("text", None)
        url = overrides.pop("url", None)
        if url is not None:
            source = RemoteContent(url=url, key=overrides.pop("key", None))
        else:
            source = InlineContent(text=text or "Clinical guidance text.")
        values = dict(
            id=uuid4(),
            trust_name="St George's Hospital",
            title=f"Guideline {counter['n']}",
            description=None,
            medical_speciality=MedicalSpeciality.CARDIOLOGY,
            source=source,
            tags=[],
            is_active=True,
            created_by=ADMIN.id,
            created_at=stamp,
            updated_at=stamp,
        )
        values.update(overrides)
        return Guideline(**values)

    return _make


@pytest.fixture
async def client(service):
    app.dependency_overrides[get_catalog_service] = lambda: service
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            yield ac
    finally:
        app.dependency_overrides.clear()
