"""
Shared test fixtures: SQLite database, seeded catalog, test client and a
renderer that writes into the test's tmp directory.
"""

import os
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

# Point the app at the test database before importing app modules
os.environ["DATABASE_URL"] = "sqlite:///./test.db"

from printquote.database import Base, get_db
from printquote.deps import get_renderer
from printquote.main import app
from printquote.pdf_generator import PdfRenderer
from printquote.repository import QuoteRepository


TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = override_get_db


@pytest.fixture(autouse=True)
def setup_database():
    """Create and seed all tables before each test, drop after."""
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        QuoteRepository(session).seed_defaults()
    finally:
        session.close()
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def artifact_dir(tmp_path):
    path = tmp_path / "artifacts"
    app.dependency_overrides[get_renderer] = lambda: PdfRenderer(str(path))
    yield path
    app.dependency_overrides.pop(get_renderer, None)


@pytest.fixture
def client(artifact_dir, catalog):
    """FastAPI test client."""
    return TestClient(app)


@pytest.fixture
def db():
    """Direct database session for test setup/assertions."""
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def repo(db):
    return QuoteRepository(db)


@pytest.fixture
def catalog(repo):
    """Seeded materials plus a 60/kg filament used by the worked pricing example."""
    materials = [{"name": m.name, "cost_per_kg": m.cost_per_kg} for m in repo.list_materials()]
    materials.append({"name": "Economy PLA", "cost_per_kg": 60.0})
    return repo.replace_materials(materials)


def sample_quote(**overrides):
    """One product of 2 x (3 pieces of Economy PLA): total 451.20."""
    payload = {
        "client_name": "Ana Souza",
        "discount": "0",
        "items": [
            {
                "name": "Desk organiser",
                "quantity": 2,
                "pieces": [
                    {"name": "Divider", "quantity": 3, "material": "Economy PLA", "weight_grams": 10, "print_hours": 2, "additional_cost": 5},
                ],
            }
        ],
    }
    payload.update(overrides)
    return payload
