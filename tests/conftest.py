"""Test configuration and fixtures.

Each test gets a fresh in-memory SQLite database (StaticPool) and an
in-memory blob store; the API client uses both through dependency overrides.
"""

import os

# Set test env before any app imports
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["STORAGE_URI"] = "memory://"
os.environ["LOG_FORMAT"] = "console"
os.environ.pop("OPENAI_API_KEY", None)
os.environ.pop("ANTHROPIC_API_KEY", None)

from typing import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, text
from sqlalchemy.orm import Session, sessionmaker

from dataprep_suite.api import app
from dataprep_suite.db import models  # noqa: F401
from dataprep_suite.db.base import Base, create_app_engine, get_db
from dataprep_suite.storage import MemoryStorageProvider, get_storage

test_engine = create_app_engine("sqlite:///:memory:")
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


@pytest.fixture(autouse=True)
def setup_database() -> Generator[None, None, None]:
    """Create all tables before each test, drop them after."""
    Base.metadata.create_all(bind=test_engine)
    yield
    Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Direct DB access for service tests and seeding."""
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def storage() -> MemoryStorageProvider:
    return MemoryStorageProvider()


@pytest.fixture
def client(storage: MemoryStorageProvider) -> Generator[TestClient, None, None]:
    """API client bound to the test database and storage."""

    def override_get_db():
        session = TestSessionLocal()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_storage] = lambda: storage
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def sample_records() -> list:
    return [
        {
            "customer_id": "C001",
            "email": "alice@example.com",
            "age": 34,
            "signup_date": "2023-01-15",
            "address": {"city": "Springfield", "zip": "12345"},
        },
        {
            "customer_id": "C002",
            "email": "bob@example.com",
            "age": 51,
            "signup_date": "2023-03-02",
            "address": {"city": "Shelbyville", "zip": "54321"},
        },
        {
            "customer_id": "C003",
            "email": "not-an-email",
            "age": None,
            "signup_date": "2023-07-19",
            "address": {"city": "Springfield", "zip": "12345"},
        },
    ]


SHOP_SCHEMA = [
    "CREATE TABLE customers (id INTEGER PRIMARY KEY, name TEXT NOT NULL, email TEXT)",
    "CREATE TABLE orders (id INTEGER PRIMARY KEY, "
    "customer_id INTEGER REFERENCES customers(id), total NUMERIC)",
    "CREATE TABLE order_items (id INTEGER PRIMARY KEY, "
    "order_id INTEGER REFERENCES orders(id), sku TEXT)",
    "INSERT INTO customers VALUES (1, 'Alice', 'alice@example.com'), (2, 'Bob', 'bob@example.com')",
    "INSERT INTO orders VALUES (10, 1, 25.5), (11, 1, 10), (12, 2, 5)",
    "INSERT INTO order_items VALUES (100, 10, 'A'), (101, 10, 'B'), (102, 12, 'C')",
]


@pytest.fixture
def shop_db(tmp_path) -> str:
    """Path of a SQLite file with customers, orders and order_items linked by foreign keys."""
    path = tmp_path / "shop.db"
    engine = create_engine(f"sqlite:///{path}")
    with engine.begin() as conn:
        for statement in SHOP_SCHEMA:
            conn.execute(text(statement))
    engine.dispose()
    return str(path)
