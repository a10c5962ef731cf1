# FILE: tests/test_context_store.py
"""
Tests for memoire/context/store.py
Attaching and reading generation contexts.
"""

import sys
from pathlib import Path

_project_root = Path(__file__).parent.parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

import pytest

from memoire.context.fingerprint import build_generation_context


class TestAttachAndRead:

    def test_read_without_context(self, db, make_project, make_version):
        from memoire.context.store import read

        version = make_version(make_project())
        assert read(db, version.artifacts[0].id) is None

    def test_roundtrip(self, db, make_project, make_version):
        from memoire.context.store import attach, read

        version = make_version(make_project())
        artifact = version.artifacts[0]
        ctx = build_generation_context(profile={"name": "ACME"}, question="Describe your staff")

        stored = attach(db, artifact.id, ctx)
        assert stored.generated_at == ctx.generated_at
        assert read(db, artifact.id) == ctx

    def test_attach_replaces_previous(self, db, make_project, make_version):
        from memoire.context.store import attach, read

        version = make_version(make_project())
        artifact = version.artifacts[0]
        attach(db, artifact.id, build_generation_context(question="old"))
        newer = build_generation_context(question="new")
        attach(db, artifact.id, newer)
        assert read(db, artifact.id).question_hash == newer.question_hash

    def test_attach_on_frozen_version_rejected(self, db, make_project, make_version):
        from memoire.context.store import attach, read
        from memoire.errors import FrozenVersionError
        from memoire.versions.service import VersionLifecycleManager

        version = make_version(make_project())
        VersionLifecycleManager.freeze(db, version)

        with pytest.raises(FrozenVersionError):
            attach(db, version.artifacts[0].id, build_generation_context(question="q"))
        assert read(db, version.artifacts[0].id) is None

    def test_unknown_artifact(self, db):
        from memoire.context.store import attach
        from memoire.errors import NotFoundError

        with pytest.raises(NotFoundError):
            attach(db, "missing", build_generation_context())

    def test_unreadable_payload_treated_as_absent(self):
        from memoire.context.store import deserialize_context

        assert deserialize_context({"generated_at": "not a date"}) is None
        assert deserialize_context(None) is None
