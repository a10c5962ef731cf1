# FILE: tests/test_staleness.py
"""
Tests for memoire/context/staleness.py
Pure comparison plus the version/artifact report services.
"""

import sys
from pathlib import Path

_project_root = Path(__file__).parent.parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

import pytest

from memoire.context.fingerprint import build_generation_context
from memoire.context.schemas import Category, CurrentDigests
from memoire.context.staleness import compare


def _stored():
    return build_generation_context(
        profile={"name": "ACME"},
        requirements=[{"id": "r1", "title": "A", "content": "x"}],
        reference_docs=[{"id": "d1", "extracted_text": "doc"}],
        question="Describe your staff",
    )


def _current_from(ctx, **overrides):
    values = dict(
        company_profile_hash=ctx.company_profile_hash,
        requirements_hash=ctx.requirements_hash,
        reference_docs_hash=ctx.reference_docs_hash,
        question_hash=ctx.question_hash,
    )
    values.update(overrides)
    return CurrentDigests(**values)


class TestCompare:
    """compare() never raises and only looks at supplied categories."""

    def test_no_stored_context_is_never_stale(self):
        result = compare(None, CurrentDigests(requirements_hash="ffff"))
        assert result.is_stale is False
        assert result.changed_categories == []

    def test_identical_is_fresh(self):
        ctx = _stored()
        result = compare(ctx, _current_from(ctx))
        assert result.is_stale is False

    def test_requirement_change_reported(self):
        ctx = _stored()
        result = compare(ctx, _current_from(ctx, requirements_hash="0000000000000000"))
        assert result.is_stale is True
        assert result.changed_categories == [Category.REQUIREMENTS]

    def test_unsupplied_category_skipped(self):
        ctx = _stored()
        result = compare(ctx, CurrentDigests(question_hash=ctx.question_hash))
        assert result.is_stale is False

    def test_supplied_empty_is_compared(self):
        """All requirements deleted after generation counts as a change."""
        ctx = _stored()
        result = compare(ctx, _current_from(ctx, requirements_hash=""))
        assert result.changed_categories == [Category.REQUIREMENTS]

    def test_multiple_changes_in_category_order(self):
        ctx = _stored()
        result = compare(ctx, _current_from(ctx, question_hash="a" * 16, company_profile_hash="b" * 16))
        assert result.changed_categories == [Category.COMPANY_PROFILE, Category.QUESTION]
        assert result.labels == ["Company profile changed", "Question changed"]


class TestVersionStalenessReport:
    """check_version_staleness against stored inputs."""

    @pytest.fixture
    def generated_version(self, db, make_project, make_version):
        from memoire.context.store import attach
        from memoire.projects.service import load_generation_inputs

        project = make_project(
            profile={"name": "ACME"},
            requirements=[("r1", "Delay", "Deliver in 3 months")],
            docs=[("d1", "Brochure", "We build things")],
        )
        version = make_version(project)
        inputs = load_generation_inputs(db, project.id)
        first = version.artifacts[0]
        attach(db, first.id, build_generation_context(
            profile=inputs.profile,
            requirements=inputs.requirements,
            reference_docs=inputs.reference_docs,
            question=first.question,
        ))
        return project, version

    def test_fresh_after_generation(self, db, generated_version):
        from memoire.context.staleness import check_version_staleness

        project, version = generated_version
        report = check_version_staleness(db, version.id, "user-1")
        assert report.generated_count == 1
        assert report.stale_count == 0
        assert [a.was_generated for a in report.artifacts] == [True, False, False]

    def test_requirement_edit_makes_stale(self, db, generated_version):
        from memoire.context.staleness import check_version_staleness
        from memoire.projects.models import Requirement

        project, version = generated_version
        req = db.query(Requirement).filter(Requirement.id == "r1").first()
        req.content = "Deliver in 2 months"
        db.commit()

        report = check_version_staleness(db, version.id, "user-1")
        assert report.stale_count == 1
        stale = report.artifacts[0]
        assert [c.category for c in stale.changes] == [Category.REQUIREMENTS]
        assert stale.changes[0].label == "Requirements changed"

    def test_question_edit_in_template_makes_stale(self, db, generated_version):
        from memoire.context.staleness import check_artifact_staleness
        from memoire.projects.models import TemplateQuestion

        project, version = generated_version
        q = db.query(TemplateQuestion).filter(TemplateQuestion.id == "q1").first()
        q.question = "Describe your staff and their certifications"
        db.commit()

        report = check_artifact_staleness(db, version.artifacts[0].id, "user-1")
        assert report.is_stale is True
        assert [c.category for c in report.changes] == [Category.QUESTION]

    def test_foreign_user_rejected(self, db, generated_version):
        from memoire.context.staleness import check_version_staleness
        from memoire.errors import UnauthorizedError

        _, version = generated_version
        with pytest.raises(UnauthorizedError):
            check_version_staleness(db, version.id, "someone-else")

    def test_unknown_version(self, db):
        from memoire.context.staleness import check_version_staleness
        from memoire.errors import NotFoundError

        with pytest.raises(NotFoundError):
            check_version_staleness(db, "missing", "user-1")
