# FILE: memoire/versions/models.py
"""
SQLAlchemy ORM models for memoire versions and their artifacts.

A Version is one answer set for a project. Once frozen it is immutable;
further editing happens on a clone linked through parent_version_id.
"""

from datetime import datetime
from uuid import uuid4

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, JSON, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from memoire.db import Base

ARTIFACT_STATUSES = ("empty", "draft", "final")


def _uuid() -> str:
    return str(uuid4())


class Version(Base):
    __tablename__ = "versions"
    __table_args__ = (
        UniqueConstraint("project_id", "version_number", name="uq_versions_project_number"),
    )

    id = Column(String(36), primary_key=True, default=_uuid)
    project_id = Column(String(36), ForeignKey("projects.id"), nullable=False, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    version_number = Column(Integer, nullable=False, default=1)
    # False -> True only, see VersionLifecycleManager.freeze
    is_frozen = Column(Boolean, nullable=False, default=False)
    parent_version_id = Column(String(36), ForeignKey("versions.id"), nullable=True, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    artifacts = relationship(
        "Artifact",
        back_populates="version",
        cascade="all, delete-orphan",
        order_by="Artifact.order_index",
    )
    parent = relationship("Version", remote_side=[id])


class Artifact(Base):
    """
    One generated (or hand-written) answer inside a version.

    question_id is a weak reference into the live template: the question may
    be deleted later, leaving the artifact orphaned.
    """
    __tablename__ = "artifacts"

    id = Column(String(36), primary_key=True, default=_uuid)
    version_id = Column(String(36), ForeignKey("versions.id"), nullable=False, index=True)
    question_id = Column(String(36), nullable=True, index=True)
    parent_question_id = Column(String(36), nullable=True)

    # Snapshot of the question at creation time
    title = Column(String(500), nullable=False)
    question = Column(Text, nullable=True)
    order_index = Column(Integer, nullable=False, default=0)

    text = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default="empty")

    # Serialized GenerationContext, None if never AI-generated
    generation_context = Column(JSON, nullable=True)
    generated_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    version = relationship("Version", back_populates="artifacts")
