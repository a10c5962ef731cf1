# FILE: tests/test_fingerprint.py
"""
Tests for memoire/context/fingerprint.py
Content digests for profile, requirements, reference docs and question.
"""

import sys
from pathlib import Path

_project_root = Path(__file__).parent.parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

from datetime import datetime
from types import SimpleNamespace

import pytest

from memoire.context.fingerprint import (
    build_generation_context,
    fingerprint_profile,
    fingerprint_question,
    fingerprint_reference_docs,
    fingerprint_requirements,
)


class TestDigestFormat:
    """Digests are the first 16 hex chars of an MD5."""

    def test_requirements_known_value(self):
        reqs = [
            {"id": "r2", "title": "Title B", "content": None},
            {"id": "r1", "title": "Title A", "content": "Content A"},
        ]
        # md5("r1:Title A:Content A|r2:Title B:")
        assert fingerprint_requirements(reqs) == "782d51d7a8cf4bb1"

    def test_profile_known_value(self):
        # md5('{"a":"1","b":null}'), keys sorted, compact separators
        assert fingerprint_profile({"b": None, "a": "1"}) == "a97428c59aed435c"

    def test_question_known_value(self):
        assert fingerprint_question("Describe your staff") == "c763591acc555550"

    def test_length_and_charset(self):
        digest = fingerprint_question("anything")
        assert len(digest) == 16
        assert all(c in "0123456789abcdef" for c in digest)


class TestEmptyInputs:
    """Absent and empty inputs both map to the empty string."""

    @pytest.mark.parametrize("value", [None, {}])
    def test_profile(self, value):
        assert fingerprint_profile(value) == ""

    @pytest.mark.parametrize("value", [None, []])
    def test_requirements(self, value):
        assert fingerprint_requirements(value) == ""

    @pytest.mark.parametrize("value", [None, []])
    def test_reference_docs(self, value):
        assert fingerprint_reference_docs(value) == ""

    @pytest.mark.parametrize("value", [None, ""])
    def test_question(self, value):
        assert fingerprint_question(value) == ""


class TestDeterminism:
    """Same content gives the same digest regardless of order or shape."""

    def test_requirements_order_independent(self):
        a = [{"id": "r1", "title": "A", "content": "x"}, {"id": "r2", "title": "B", "content": "y"}]
        assert fingerprint_requirements(a) == fingerprint_requirements(list(reversed(a)))

    def test_profile_key_order_independent(self):
        assert fingerprint_profile({"name": "ACME", "staff": "12"}) == fingerprint_profile(
            {"staff": "12", "name": "ACME"}
        )

    def test_objects_and_mappings_agree(self):
        as_dict = [{"id": "d1", "extracted_text": "hello"}]
        as_obj = [SimpleNamespace(id="d1", extracted_text="hello")]
        assert fingerprint_reference_docs(as_dict) == fingerprint_reference_docs(as_obj)

    def test_missing_fields_count_as_empty(self):
        assert fingerprint_requirements([{"id": "r1"}]) == fingerprint_requirements(
            [{"id": "r1", "title": None, "content": ""}]
        )

    def test_content_change_changes_digest(self):
        before = fingerprint_requirements([{"id": "r1", "title": "A", "content": "x"}])
        after = fingerprint_requirements([{"id": "r1", "title": "A", "content": "x!"}])
        assert before != after


class TestBuildGenerationContext:

    def test_all_categories_and_counts(self):
        ctx = build_generation_context(
            profile={"name": "ACME"},
            requirements=[{"id": "r1", "title": "A", "content": "x"}],
            reference_docs=[{"id": "d1", "extracted_text": "doc"}, {"id": "d2", "extracted_text": "doc2"}],
            question="Describe your staff",
        )
        assert ctx.company_profile_hash == fingerprint_profile({"name": "ACME"})
        assert ctx.question_hash == "c763591acc555550"
        assert ctx.source_counts.requirements == 1
        assert ctx.source_counts.reference_docs == 2

    def test_generated_at_override(self):
        stamp = datetime(2024, 1, 2, 3, 4, 5)
        assert build_generation_context(generated_at=stamp).generated_at == stamp

    def test_context_is_frozen(self):
        ctx = build_generation_context(question="q")
        with pytest.raises(Exception):
            ctx.question_hash = "changed"
