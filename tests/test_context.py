import pytest

from portfolio_api.context import ContextBuildError, ContextBuilder
from tests.conftest import InMemoryDatabase


@pytest.fixture
def portfolio_db():
    db = InMemoryDatabase()
    db.skills[1] = {"id": 1, "name": "Kubernetes", "category": "Cloud", "proficiency": 5, "icon": "", "order": 1}
    db.skills[2] = {"id": 2, "name": "Grafana", "category": "Observability", "proficiency": 4, "icon": "", "order": 2}
    db.experiences[3] = {
        "id": 3,
        "title": "SRE",
        "company": "Mobimeo",
        "start_date": "2021-01-01",
        "end_date": None,
        "current": True,
        "description": "Reliability work",
        "technologies": ["GCP"],
        "order": 1,
        "active": True,
    }
    db.experiences[4] = {
        "id": 4,
        "title": "Hidden role",
        "company": "Secret Corp",
        "start_date": "2010-01-01",
        "end_date": "2011-01-01",
        "current": False,
        "description": "",
        "technologies": [],
        "order": 0,
        "active": False,
    }
    db.projects[5] = {
        "id": 5,
        "title": "Knative Lambda",
        "description": "Serverless platform",
        "short_description": None,
        "type": "Serverless",
        "technologies": ["Knative"],
        "github_url": "https://github.com/brunovlucena/knative-lambda",
        "active": True,
        "order": 1,
    }
    db.contents[6] = {"id": 6, "key": "about", "value": {"description": "Cloud engineer", "highlights": [{"icon": "", "text": "Homelab"}]}}
    db.contents[7] = {"id": 7, "key": "contact", "value": {"email": "bruno@lucena.cloud", "location": "Brazil"}}
    return db


class TestContextBuilder:
    async def test_includes_every_section(self, portfolio_db):
        """Skills, experience, projects, about and contact are all present."""
        context = await ContextBuilder(portfolio_db).build_context("anything")
        assert "SKILLS:" in context and "Cloud: Kubernetes (5/5)" in context
        assert "Observability: Grafana (4/5)" in context
        assert "SRE at Mobimeo (2021-01-01 to present)" in context
        assert "Knative Lambda (Serverless): Serverless platform" in context
        assert "Cloud engineer" in context and "- Homelab" in context
        assert "email: bruno@lucena.cloud" in context

    async def test_fetches_everything_regardless_of_question(self, portfolio_db):
        """The question does not narrow the context."""
        builder = ContextBuilder(portfolio_db)
        assert await builder.build_context("skills?") == await builder.build_context("contact?")

    async def test_inactive_rows_excluded(self, portfolio_db):
        context = await ContextBuilder(portfolio_db).build_context("x")
        assert "Secret Corp" not in context

    async def test_empty_sections_omitted(self):
        assert await ContextBuilder(InMemoryDatabase()).build_context("x") == ""

    @pytest.mark.parametrize("failing", ["get_skills", "get_projects", "get_content:contact"])
    async def test_any_failure_aborts(self, portfolio_db, failing):
        """The first failing query aborts the whole build."""
        portfolio_db.fail_on.add(failing)
        with pytest.raises(ContextBuildError):
            await ContextBuilder(portfolio_db).build_context("x")
