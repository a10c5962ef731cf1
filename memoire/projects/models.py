# FILE: memoire/projects/models.py
"""
SQLAlchemy ORM models for the generation inputs of a project.

These tables are owned by the surrounding application (uploads, parsing,
profile editing). The engine only reads them to fingerprint the current
inputs and to build prompts.
"""

from datetime import datetime
from uuid import uuid4

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, JSON, String, Text
from sqlalchemy.orm import relationship

from memoire.db import Base


def _uuid() -> str:
    return str(uuid4())


class Project(Base):
    __tablename__ = "projects"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(64), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    company_profile = relationship(
        "CompanyProfile", back_populates="project", uselist=False, cascade="all, delete-orphan"
    )
    requirements = relationship("Requirement", back_populates="project", cascade="all, delete-orphan")
    reference_documents = relationship(
        "ReferenceDocument", back_populates="project", cascade="all, delete-orphan"
    )
    template_questions = relationship(
        "TemplateQuestion",
        back_populates="project",
        cascade="all, delete-orphan",
        order_by="TemplateQuestion.order_index",
    )


class CompanyProfile(Base):
    """Free-form company description: {field_name: value or None}."""
    __tablename__ = "company_profiles"

    id = Column(String(36), primary_key=True, default=_uuid)
    project_id = Column(String(36), ForeignKey("projects.id"), nullable=False, unique=True, index=True)
    fields = Column(JSON, nullable=False, default=dict)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    project = relationship("Project", back_populates="company_profile")


class Requirement(Base):
    """Requirement extracted from the tender documents."""
    __tablename__ = "requirements"

    id = Column(String(36), primary_key=True, default=_uuid)
    project_id = Column(String(36), ForeignKey("projects.id"), nullable=False, index=True)
    title = Column(String(500), nullable=True)
    content = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    project = relationship("Project", back_populates="requirements")


class ReferenceDocument(Base):
    __tablename__ = "reference_documents"

    id = Column(String(36), primary_key=True, default=_uuid)
    project_id = Column(String(36), ForeignKey("projects.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    # Text produced by the document parser, None until parsing has finished
    extracted_text = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    project = relationship("Project", back_populates="reference_documents")


class TemplateQuestion(Base):
    """
    One question of the live template.

    The id is the stable identity used to match artifacts across versions;
    title and order_index may change freely.
    """
    __tablename__ = "template_questions"

    id = Column(String(36), primary_key=True, default=_uuid)
    project_id = Column(String(36), ForeignKey("projects.id"), nullable=False, index=True)
    title = Column(String(500), nullable=False)
    question = Column(Text, nullable=True)
    required = Column(Boolean, default=False, nullable=False)
    order_index = Column(Integer, default=0, nullable=False)
    parent_id = Column(String(36), nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    project = relationship("Project", back_populates="template_questions")
