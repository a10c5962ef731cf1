# FILE: tests/conftest.py
"""
Pytest configuration for the memoire test suite.

Configures:
- pytest-asyncio for async test support
- An in-memory SQLite database shared by every session of a test
- Builders for projects, templates and inputs
- A scripted generation client
"""
import sys
from pathlib import Path

_project_root = Path(__file__).parent.parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

pytest_plugins = ["pytest_asyncio"]


@pytest.fixture
def engine():
    """Fresh in-memory database with every table created."""
    from memoire.db import Base
    from memoire.projects import models as _projects  # noqa: F401
    from memoire.versions import models as _versions  # noqa: F401
    from memoire.jobs import models as _jobs  # noqa: F401
    from memoire.usage import models as _usage  # noqa: F401

    eng = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def make_project(db):
    """
    Build a project with its template and inputs.

    questions: list of (question_id, title, question_text)
    """
    from memoire.projects.models import (
        CompanyProfile,
        Project,
        ReferenceDocument,
        Requirement,
        TemplateQuestion,
    )

    def _make(
        user_id="user-1",
        questions=(("q1", "Staffing", "Describe your staff"),
                   ("q2", "Equipment", "List your equipment"),
                   ("q3", "Safety", "Explain your safety plan")),
        profile=None,
        requirements=(),
        docs=(),
    ):
        project = Project(user_id=user_id, name="Tender")
        db.add(project)
        db.flush()

        for index, (qid, title, text) in enumerate(questions):
            db.add(TemplateQuestion(
                id=qid, project_id=project.id, title=title, question=text, order_index=index,
            ))
        if profile is not None:
            db.add(CompanyProfile(project_id=project.id, fields=profile))
        for rid, title, content in requirements:
            db.add(Requirement(id=rid, project_id=project.id, title=title, content=content))
        for did, name, text in docs:
            db.add(ReferenceDocument(id=did, project_id=project.id, name=name, extracted_text=text))

        db.commit()
        db.refresh(project)
        return project

    return _make


@pytest.fixture
def make_version(db):
    """Create the initial version of a project from its live template."""
    from memoire.projects.service import load_live_template
    from memoire.versions.service import VersionLifecycleManager

    def _make(project, title="Memoire"):
        questions = load_live_template(db, project.id)
        return VersionLifecycleManager.create_initial(db, project.id, project.user_id, questions, title=title)

    return _make


class FakeGenerationClient:
    """
    Scripted stand-in for the generation provider.

    plan_reply is returned for the planning stage. Answers echo a counter
    unless the prompt contains one of the fail_on markers. Every reply
    reports 100 prompt and 50 completion tokens on gpt-4o-mini.
    """

    def __init__(self, plan_reply="{}", fail_on=(), error=None):
        self.plan_reply = plan_reply
        self.fail_on = tuple(fail_on)
        self.error = error
        self.calls = []

    async def generate(self, stage, system_prompt, user_prompt, max_tokens=None):
        from memoire.generation.client import GenerationReply
        from memoire.generation.registry import LlmUsage

        self.calls.append({"stage": stage, "prompt": user_prompt, "max_tokens": max_tokens})
        usage = LlmUsage(prompt_tokens=100, completion_tokens=50, total_tokens=150)
        if stage == "PLANNING":
            return GenerationReply(self.plan_reply, "openai", "gpt-4o-mini", usage)
        for marker in self.fail_on:
            if marker in user_prompt:
                from memoire.errors import ServiceUnavailable
                raise self.error or ServiceUnavailable(f"provider down for {marker}")
        answers = sum(1 for c in self.calls if c["stage"] == "ANSWER")
        return GenerationReply(f"Generated answer {answers}", "openai", "gpt-4o-mini", usage)


@pytest.fixture
def fake_client():
    return FakeGenerationClient()


@pytest.fixture
def planner(fake_client):
    from memoire.generation.planner import BatchPlanner
    from memoire.generation.rate_limit import InMemoryRateLimiter

    return BatchPlanner(client=fake_client, rate_limiter=InMemoryRateLimiter(), concurrency=2)
