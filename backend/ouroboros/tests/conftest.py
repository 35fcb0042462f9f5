import os
os.environ["TESTING"] = "1"
os.environ.setdefault("SECRET_KEY", "test-secret")
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

import sys
from pathlib import Path
from types import SimpleNamespace

import uuid

sys.path.append(str(Path(__file__).resolve().parents[2]))

from ouroboros.main import app
from ouroboros.database import Base, get_db
from ouroboros import models
from ouroboros.auth import create_access_token, get_password_hash

SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False, "timeout": 30},
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base.metadata.drop_all(bind=engine)
Base.metadata.create_all(bind=engine)

DEFAULT_PASSWORD = "correct-horse"


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()

app.dependency_overrides[get_db] = override_get_db


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def db_session():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


def auth_headers(username: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token({'sub': username})}"}


@pytest.fixture(scope="session")
def agent():
    """
    purpose: provision an account at a chosen clearance straight in the database
    outputs: namespace with id (str), username, password, headers
    status: active
    """

    def factory(clearance_level: int = 1, *, username: str | None = None, password: str = DEFAULT_PASSWORD, **fields):
        username = username or f"agent_{uuid.uuid4().hex[:10]}"
        db = TestingSessionLocal()
        try:
            user = models.User(
                username=username,
                email=f"{username}@example.com",
                hashed_password=get_password_hash(password),
                display_name=fields.pop("display_name", username.replace("_", " ").title()),
                clearance_level=clearance_level,
                is_verified=True,
                specializations=[],
                **fields,
            )
            db.add(user)
            db.commit()
            db.refresh(user)
            user_id = str(user.id)
        finally:
            db.close()
        return SimpleNamespace(id=user_id, username=username, password=password, headers=auth_headers(username))

    return factory


@pytest.fixture
def department(client, agent):
    """A fresh department with two ranks, created through the API by an Archmagos."""

    admin = agent(5)
    name = f"Division {uuid.uuid4().hex[:8]}"
    dept = client.post("/api/departments", json={"name": name, "codename": "TEST"}, headers=admin.headers)
    assert dept.status_code == 201, dept.text
    dept_id = dept.json()["id"]
    low = client.post(
        "/api/ranks",
        json={"department_id": dept_id, "name": "Field Agent", "clearance_level": 1, "sort_order": 1},
        headers=admin.headers,
    )
    high = client.post(
        "/api/ranks",
        json={"department_id": dept_id, "name": "Senior Agent", "clearance_level": 3, "sort_order": 2},
        headers=admin.headers,
    )
    assert low.status_code == 201 and high.status_code == 201
    return SimpleNamespace(id=dept_id, name=name, low_rank=low.json()["id"], high_rank=high.json()["id"])
