"""Shared fixtures: in-memory Postgres and Redis stand-ins and a scripted Ollama server."""

import copy
from datetime import date, datetime, timezone

import httpx
import pytest
from fastapi.testclient import TestClient
from redis.exceptions import ConnectionError as RedisConnectionError

from portfolio_api.app import create_app
from portfolio_api.cache import ResponseCache
from portfolio_api.config import Settings
from portfolio_api.db import DuplicateKeyError
from portfolio_api.llm import LLMService

ADMIN_PASSWORD = "test-admin-password"
MODEL = "gemma2:2b"
OLLAMA_URL = "http://ollama.test"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _json_safe(record: dict) -> dict:
    return {k: v.isoformat() if isinstance(v, (date, datetime)) else v for k, v in record.items()}


class InMemoryDatabase:
    """Implements the Database interface over plain dicts."""

    def __init__(self):
        self.projects: dict[int, dict] = {}
        self.skills: dict[int, dict] = {}
        self.experiences: dict[int, dict] = {}
        self.contents: dict[int, dict] = {}
        self.visitors: dict[str, dict] = {}
        self.project_views: list[dict] = []
        self.fail_on: set[str] = set()
        self.connected = False
        self._next_id = 0

    def _id(self) -> int:
        self._next_id += 1
        return self._next_id

    def _maybe_fail(self, name: str):
        if name in self.fail_on:
            raise RuntimeError(f"simulated failure in {name}")

    async def connect(self):
        self.connected = True

    async def close(self):
        self.connected = False

    async def ping(self) -> bool:
        self._maybe_fail("ping")
        return self.connected

    # projects

    async def get_projects(self, active_only: bool = True):
        self._maybe_fail("get_projects")
        rows = [p for p in self.projects.values() if p["active"] or not active_only]
        return copy.deepcopy(sorted(rows, key=lambda p: (p["order"], p["id"])))

    async def get_project(self, project_id, active_only: bool = True):
        project = self.projects.get(project_id)
        if not project or (active_only and not project["active"]):
            return None
        return copy.deepcopy(project)

    async def create_project(self, project):
        record = {"id": self._id(), **_json_safe(project), "created_at": _now(), "updated_at": _now()}
        self.projects[record["id"]] = record
        return copy.deepcopy(record)

    async def update_project(self, project_id, project):
        if project_id not in self.projects:
            return None
        self.projects[project_id].update(_json_safe(project), updated_at=_now())
        return copy.deepcopy(self.projects[project_id])

    async def delete_project(self, project_id):
        self.project_views = [v for v in self.project_views if v["project_id"] != project_id]
        return self.projects.pop(project_id, None) is not None

    async def set_project_active(self, project_id, active):
        if project_id not in self.projects:
            return False
        self.projects[project_id]["active"] = active
        return True

    async def get_project_stats(self):
        active = sum(1 for p in self.projects.values() if p["active"])
        return {"total": len(self.projects), "active": active}

    # skills

    async def get_skills(self):
        self._maybe_fail("get_skills")
        return copy.deepcopy(sorted(self.skills.values(), key=lambda s: (s["order"], s["name"])))

    async def get_skill(self, skill_id):
        return copy.deepcopy(self.skills.get(skill_id))

    async def create_skill(self, skill):
        record = {"id": self._id(), **skill}
        self.skills[record["id"]] = record
        return copy.deepcopy(record)

    async def update_skill(self, skill_id, skill):
        if skill_id not in self.skills:
            return None
        self.skills[skill_id].update(skill)
        return copy.deepcopy(self.skills[skill_id])

    async def delete_skill(self, skill_id):
        return self.skills.pop(skill_id, None) is not None

    # experience

    async def get_experiences(self, active_only: bool = True):
        self._maybe_fail("get_experiences")
        rows = [e for e in self.experiences.values() if e["active"] or not active_only]
        rows.sort(key=lambda e: e["start_date"], reverse=True)
        rows.sort(key=lambda e: e["order"], reverse=True)
        return copy.deepcopy(rows)

    async def get_experience(self, experience_id, active_only: bool = True):
        experience = self.experiences.get(experience_id)
        if not experience or (active_only and not experience["active"]):
            return None
        return copy.deepcopy(experience)

    async def create_experience(self, experience):
        record = {"id": self._id(), **_json_safe(experience)}
        self.experiences[record["id"]] = record
        return copy.deepcopy(record)

    async def update_experience(self, experience_id, experience):
        if experience_id not in self.experiences:
            return None
        self.experiences[experience_id].update(_json_safe(experience))
        return copy.deepcopy(self.experiences[experience_id])

    async def delete_experience(self, experience_id):
        return self.experiences.pop(experience_id, None) is not None

    # content

    def _content_by_key(self, key):
        return next((c for c in self.contents.values() if c["key"] == key), None)

    async def get_contents(self):
        return copy.deepcopy(sorted(self.contents.values(), key=lambda c: (c["key"], c["id"])))

    async def get_content(self, key):
        self._maybe_fail(f"get_content:{key}")
        return copy.deepcopy(self._content_by_key(key))

    async def create_content(self, key, value):
        if self._content_by_key(key):
            return None
        record = {"id": self._id(), "key": key, "value": copy.deepcopy(value)}
        self.contents[record["id"]] = record
        return copy.deepcopy(record)

    async def update_content(self, content_id, key, value):
        if content_id not in self.contents:
            return None
        existing = self._content_by_key(key)
        if existing and existing["id"] != content_id:
            raise DuplicateKeyError(key)
        self.contents[content_id].update(key=key, value=copy.deepcopy(value))
        return copy.deepcopy(self.contents[content_id])

    async def delete_content(self, content_id):
        return self.contents.pop(content_id, None)

    async def merge_content(self, key, value):
        existing = self._content_by_key(key)
        if existing:
            existing["value"] = {**existing["value"], **copy.deepcopy(value)}
            return copy.deepcopy(existing)
        return await self.create_content(key, value)

    # analytics

    async def track_visit(self, ip, user_agent):
        visitor = self.visitors.get(ip)
        if visitor:
            visitor["visit_count"] += 1
            visitor["user_agent"] = user_agent
        else:
            self.visitors[ip] = {"ip": ip, "user_agent": user_agent, "visit_count": 1}

    async def track_project_view(self, project_id, ip, user_agent, referrer):
        if project_id not in self.projects:
            return False
        self.project_views.append(
            {"project_id": project_id, "ip": ip, "user_agent": user_agent, "referrer": referrer}
        )
        return True


class FakePipeline:
    def __init__(self, redis):
        self.redis = redis
        self.ops = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    def set(self, key, value, ex=None, nx=False):
        self.ops.append(("set", key, value, ex, nx))

    def incr(self, key):
        self.ops.append(("incr", key))

    def ttl(self, key):
        self.ops.append(("ttl", key))

    async def execute(self):
        self.redis._check()
        results = []
        for op in self.ops:
            if op[0] == "set":
                _, key, value, ex, nx = op
                if nx and key in self.redis.data:
                    results.append(None)
                    continue
                self.redis.data[key] = str(value)
                if ex is not None:
                    self.redis.ttls[key] = ex
                results.append(True)
            elif op[0] == "incr":
                value = int(self.redis.data.get(op[1], 0)) + 1
                self.redis.data[op[1]] = str(value)
                results.append(value)
            else:
                results.append(self.redis.ttls.get(op[1], -1))
        return results


class FakeRedis:
    """The subset of redis.asyncio.Redis the API uses."""

    def __init__(self):
        self.data: dict[str, str] = {}
        self.ttls: dict[str, int] = {}
        self.down = False
        self.closed = False

    def _check(self):
        if self.down:
            raise RedisConnectionError("connection refused")

    async def ping(self):
        self._check()
        return True

    async def get(self, key):
        self._check()
        return self.data.get(key)

    async def set(self, key, value, ex=None):
        self._check()
        self.data[key] = value
        if ex is not None:
            self.ttls[key] = ex
        return True

    async def delete(self, *keys):
        self._check()
        removed = 0
        for key in keys:
            removed += self.data.pop(key, None) is not None
            self.ttls.pop(key, None)
        return removed

    def pipeline(self, transaction=True):
        return FakePipeline(self)

    async def aclose(self):
        self.closed = True


class FakeOllama:
    """httpx.MockTransport handler emulating /api/tags and /api/chat."""

    def __init__(self):
        self.models = [MODEL, "llama3:8b"]
        self.reply = "  Bruno builds Kubernetes platforms and observability stacks.  "
        self.chat_status = 200
        self.error: Exception | None = None
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        if request.url.path == "/api/tags":
            return httpx.Response(200, json={"models": [{"name": name} for name in self.models]})
        if request.url.path == "/api/chat":
            if self.chat_status != 200:
                return httpx.Response(self.chat_status, text="upstream failure")
            return httpx.Response(
                200,
                json={
                    "model": MODEL,
                    "message": {"role": "assistant", "content": self.reply},
                    "done": True,
                },
            )
        return httpx.Response(404, json={"error": "not found"})


def make_settings(**overrides) -> Settings:
    values = {
        "environment": "development",
        "admin_password": ADMIN_PASSWORD,
        "ollama_url": OLLAMA_URL,
        "llm_model": MODEL,
        "allowed_origins": ["http://localhost:3000"],
        "rate_limit_per_minute": 1000,
    }
    values.update(overrides)
    return Settings(**values)


def build_app(settings, database, redis_client, ollama, **kwargs):
    llm = LLMService(
        settings.ollama_url,
        settings.llm_model,
        client=httpx.AsyncClient(transport=httpx.MockTransport(ollama)),
    )
    return create_app(
        settings,
        database=database,
        cache=ResponseCache(client=redis_client),
        llm=llm,
        llm_probe=False,
        **kwargs,
    )


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def database():
    return InMemoryDatabase()


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def ollama():
    return FakeOllama()


@pytest.fixture
def app(settings, database, fake_redis, ollama):
    return build_app(settings, database, fake_redis, ollama)


@pytest.fixture
def client(app):
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client


@pytest.fixture
def admin_headers(client):
    response = client.post("/api/v1/admin/login", json={"password": ADMIN_PASSWORD})
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['token']}"}


@pytest.fixture
def sample_project():
    return {
        "title": "Knative Lambda",
        "description": "Serverless functions on Kubernetes.",
        "type": "Serverless",
        "technologies": ["Knative", "Go"],
        "github_url": "https://github.com/brunovlucena/knative-lambda",
        "featured": True,
        "order": 1,
    }
