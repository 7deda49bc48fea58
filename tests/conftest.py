import base64
import uuid

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from summarizer_gateway import database
from summarizer_gateway.api.dependencies import (
    get_github_client,
    get_summarization_engine,
)
from summarizer_gateway.database import Base, get_db
from summarizer_gateway.main import app
from summarizer_gateway.models import APIKey, DemoUsage
from summarizer_gateway.providers.clients import ModelSummary
from summarizer_gateway.providers.github import GitHubClient
from summarizer_gateway.services.summarizer import SummarizationEngine
from summarizer_gateway.utils.auth import hash_api_key

GITHUB_API = "https://api.github.test"


@pytest.fixture(autouse=True)
def no_redis(monkeypatch):
    monkeypatch.setattr(database, "_redis_checked", True)
    monkeypatch.setattr(database, "_redis_client", None)


@pytest.fixture
def engine(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'gateway.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def make_key(db):
    def _make(key="rsk_test-key", usage=0, limit=10, active=True, owner="owner-1"):
        record = APIKey(
            id=f"ak_{uuid.uuid4().hex[:16]}",
            key_hash=hash_api_key(key),
            owner_id=owner,
            name=f"key for {owner}",
            usage_count=usage,
            rate_limit=limit,
            is_active=active,
        )
        db.add(record)
        db.commit()
        return record.id

    return _make


@pytest.fixture
def make_demo(db):
    def _make(email="demo@example.com", usage=0):
        db.add(DemoUsage(email=email, demo_usage=usage))
        db.commit()
        return email

    return _make


@pytest.fixture
def read_usage(session_factory):
    """Read counters through a fresh session so nothing is served from cache."""

    def _read(key_id=None, email=None):
        session = session_factory()
        try:
            if key_id is not None:
                return session.get(APIKey, key_id).usage_count
            record = session.get(DemoUsage, email)
            return None if record is None else record.demo_usage
        finally:
            session.close()

    return _read


class FakeGitHubAPI:
    """Serves /repos/{owner}/{repo} and /readme from an in-memory table."""

    def __init__(self):
        self.repos = {}
        self.moved = {}
        self.requests = []

    def move_repo(self, old_name, new_name):
        """Answer requests for ``old_name`` with a 301 to ``new_name``."""
        self.moved[old_name.lower()] = new_name

    def add_repo(self, full_name, readme="", readme_status=200, status=200, **fields):
        data = {
            "full_name": full_name,
            "description": None,
            "language": None,
            "topics": [],
            "stargazers_count": 0,
        }
        data.update(fields)
        self.repos[full_name.lower()] = {
            "status": status,
            "data": data,
            "readme": readme,
            "readme_status": readme_status,
        }

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        parts = request.url.path.strip("/").split("/")
        if len(parts) < 3 or parts[0] != "repos":
            return httpx.Response(404, json={"message": "Not Found"})

        new_name = self.moved.get(f"{parts[1]}/{parts[2]}".lower())
        if new_name is not None:
            location = "/".join([GITHUB_API, "repos", new_name, *parts[3:]])
            return httpx.Response(301, headers={"Location": location})

        repo = self.repos.get(f"{parts[1]}/{parts[2]}".lower())
        if repo is None:
            return httpx.Response(404, json={"message": "Not Found"})

        if len(parts) == 4 and parts[3] == "readme":
            if repo["readme_status"] != 200:
                return httpx.Response(repo["readme_status"], json={"message": "Not Found"})
            encoded = base64.b64encode(repo["readme"].encode()).decode()
            return httpx.Response(200, json={"encoding": "base64", "content": encoded})

        if repo["status"] != 200:
            return httpx.Response(repo["status"], json={"message": "error"})
        return httpx.Response(200, json=repo["data"])

    def client(self, readme_max_chars=4000) -> GitHubClient:
        http = httpx.AsyncClient(transport=httpx.MockTransport(self.handler))
        return GitHubClient(http, api_url=GITHUB_API, readme_max_chars=readme_max_chars)


class FakeModelClient:
    """Stands in for SummaryModelClient; records the prompts it was given."""

    def __init__(self):
        self.reply = ModelSummary(
            summary="A friendly test repository.",
            cool_facts=["It says hello", "It is tiny", "It is a classic"],
        )
        self.error = None
        self.prompts = []

    async def generate(self, system_prompt, user_prompt):
        self.prompts.append(user_prompt)
        if self.error is not None:
            raise self.error
        return self.reply


@pytest.fixture
def github_api():
    api = FakeGitHubAPI()
    api.add_repo(
        "octocat/Hello-World",
        readme="# Hello World\nMy first repository on GitHub!",
        description="My first repository on GitHub!",
        language="Python",
        topics=["demo", "hello", "octocat", "extra"],
        stargazers_count=2500,
    )
    return api


@pytest.fixture
def model_client():
    return FakeModelClient()


@pytest.fixture
def client(session_factory, github_api, model_client):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_github_client] = lambda: github_api.client()
    app.dependency_overrides[get_summarization_engine] = lambda: SummarizationEngine(
        model_client
    )
    yield TestClient(app)
    app.dependency_overrides.clear()
