import os
import tempfile
from unittest.mock import MagicMock

import pytest

TEST_DB_DIR = tempfile.mkdtemp(prefix="dealdesk-tests-")

# Configure before importing the app: config is read at import time
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(TEST_DB_DIR, 'test.db')}"
os.environ.setdefault("SUPABASE_URL", "http://supabase.test")
os.environ.setdefault("SUPABASE_SERVICE_KEY", "test-key")
os.environ.setdefault("WEBHOOK_BASE_URL", "http://hooks.test")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from fastapi.testclient import TestClient  # noqa: E402

from dealdesk.db import Base, SessionLocal, engine  # noqa: E402
from dealdesk.dependencies import get_integrations, get_storage  # noqa: E402
from dealdesk.integrations import IntegrationClient  # noqa: E402
from dealdesk.main import app  # noqa: E402
from dealdesk.storage import StorageClient  # noqa: E402


@pytest.fixture(autouse=True)
def fresh_tables():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def storage():
    fake = MagicMock(spec=StorageClient)
    fake.upload.side_effect = lambda bucket, path, *args, **kwargs: path
    fake.download.return_value = b""
    fake.create_signed_url.return_value = "http://supabase.test/signed/file"
    return fake


@pytest.fixture
def integrations():
    fake = MagicMock(spec=IntegrationClient)
    fake.post_form.return_value = None
    fake.notify.return_value = True
    return fake


@pytest.fixture
def client(storage, integrations):
    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[get_integrations] = lambda: integrations
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def company(client):
    resp = client.post("/companies", json={"company_name": "Acme", "sectors": ["SaaS"]})
    assert resp.status_code == 201
    return resp.json()
