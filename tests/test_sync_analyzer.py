# FILE: tests/test_sync_analyzer.py
"""
Tests for memoire/sync/analyzer.py
Drift between a version and the live template.
"""

import sys
from pathlib import Path

_project_root = Path(__file__).parent.parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

from memoire.projects.schemas import QuestionDescriptor
from memoire.sync.analyzer import analyze


def _questions(*items):
    return [QuestionDescriptor(id=qid, title=title, order_index=i) for i, (qid, title) in enumerate(items)]


class TestAnalyze:

    def test_in_sync(self, db, make_project, make_version):
        version = make_version(make_project())
        status = analyze(version, _questions(("q1", "Staffing"), ("q2", "Equipment"), ("q3", "Safety")))
        assert status.is_in_sync is True
        assert status.template_question_count == 3
        assert status.version_artifact_count == 3
        assert status.orphan_artifact_count == 0

    def test_removed_question_adds_orphan(self, db, make_project, make_version):
        version = make_version(make_project())
        status = analyze(version, _questions(("q1", "Staffing"), ("q3", "Safety")))
        assert status.orphan_artifact_count == 1
        assert status.orphan_artifact_ids == [version.artifacts[1].id]
        assert status.is_in_sync is False

    def test_added_question_is_missing(self, db, make_project, make_version):
        version = make_version(make_project())
        live = _questions(("q1", "Staffing"), ("q2", "Equipment"), ("q3", "Safety"), ("q4", "Planning"))
        status = analyze(version, live)
        assert status.missing_question_ids == ["q4"]

    def test_reordered_question(self, db, make_project, make_version):
        version = make_version(make_project())
        status = analyze(version, _questions(("q2", "Equipment"), ("q1", "Staffing"), ("q3", "Safety")))
        assert status.renumbered_question_ids == ["q1", "q2"]
        assert status.orphan_artifact_count == 0

    def test_title_fallback_for_legacy_artifacts(self, db, make_project, make_version):
        version = make_version(make_project())
        legacy = version.artifacts[0]
        legacy.question_id = None
        legacy.title = "  STAFFING "
        db.commit()

        status = analyze(version, _questions(("q1", "Staffing"), ("q2", "Equipment"), ("q3", "Safety")))
        assert status.title_matched_artifact_ids == [legacy.id]
        assert status.orphan_artifact_count == 0

    def test_empty_template(self, db, make_project, make_version):
        version = make_version(make_project())
        status = analyze(version, [])
        assert status.orphan_artifact_count == 3
        assert status.template_question_count == 0
