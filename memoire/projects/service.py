# FILE: memoire/projects/service.py
"""Read access to project inputs and the live question template."""

import logging
from typing import List

from sqlalchemy.orm import Session

from memoire.errors import NotFoundError, UnauthorizedError
from memoire.projects.models import (
    CompanyProfile,
    Project,
    ReferenceDocument,
    Requirement,
    TemplateQuestion,
)
from memoire.projects.schemas import (
    GenerationInputs,
    QuestionDescriptor,
    ReferenceDocInput,
    RequirementInput,
)

logger = logging.getLogger(__name__)


def get_owned_project(db: Session, project_id: str, user_id: str) -> Project:
    project = db.query(Project).filter(Project.id == project_id).first()
    if not project:
        raise NotFoundError("Project", project_id)
    if project.user_id != user_id:
        raise UnauthorizedError()
    return project


def load_generation_inputs(db: Session, project_id: str) -> GenerationInputs:
    """Snapshot profile, requirements and reference documents of a project."""
    profile_row = db.query(CompanyProfile).filter(CompanyProfile.project_id == project_id).first()
    requirements = db.query(Requirement).filter(Requirement.project_id == project_id).all()
    documents = db.query(ReferenceDocument).filter(ReferenceDocument.project_id == project_id).all()

    profile = None
    if profile_row is not None:
        profile = {
            str(k): (None if v is None else str(v)) for k, v in (profile_row.fields or {}).items()
        }

    return GenerationInputs(
        project_id=project_id,
        profile=profile,
        requirements=[
            RequirementInput(id=r.id, title=r.title, content=r.content) for r in requirements
        ],
        reference_docs=[
            ReferenceDocInput(id=d.id, name=d.name, extracted_text=d.extracted_text) for d in documents
        ],
    )


def load_live_template(db: Session, project_id: str) -> List[QuestionDescriptor]:
    """Current template questions in display order."""
    rows = (
        db.query(TemplateQuestion)
        .filter(TemplateQuestion.project_id == project_id)
        .order_by(TemplateQuestion.order_index, TemplateQuestion.id)
        .all()
    )
    return [
        QuestionDescriptor(
            id=q.id,
            title=q.title,
            question=q.question,
            required=bool(q.required),
            order_index=q.order_index,
            parent_id=q.parent_id,
        )
        for q in rows
    ]
