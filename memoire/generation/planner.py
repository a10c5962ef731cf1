# FILE: memoire/generation/planner.py
"""
Two-phase batch generation.

Phase 1 (planning): one call for the whole group of questions returns a
JSON plan that spreads content between them so answers do not repeat each
other.

Phase 2 (generation): one call per question with its plan slice. Calls run
concurrently under a semaphore; failures are isolated per question. Storage
writes happen afterwards, one commit per artifact, in request order.

Every successful answer is stored with a fresh GenerationContext computed
from the same inputs that were used to build its prompt.
"""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config import settings
from memoire.context.fingerprint import build_generation_context
from memoire.context.store import apply_context
from memoire.errors import (
    InsufficientContext,
    MemoireError,
    NotFoundError,
    RateLimitExceeded,
    ServiceUnavailable,
    ValidationError,
)
from memoire.generation.client import GenerationClient, GenerationReply, RegistryGenerationClient
from memoire.generation.prompts import (
    ANSWER_SYSTEM_PROMPT,
    PLAN_SYSTEM_PROMPT,
    build_answer_prompt,
    build_plan_prompt,
)
from memoire.generation.rate_limit import RateLimiter, get_rate_limiter
from memoire.generation.schemas import (
    BatchGenerationRequest,
    BatchResult,
    GenerationItemResult,
    SectionPlan,
    SingleGenerationRequest,
)
from memoire.projects.schemas import GenerationInputs
from memoire.projects.service import load_generation_inputs, load_live_template
from memoire.usage.service import record_usage
from memoire.versions.models import Artifact, Version
from memoire.versions.service import VersionLifecycleManager

logger = logging.getLogger(__name__)

PLANNING_STAGE = "PLANNING"
ANSWER_STAGE = "ANSWER"


def _strip_code_fences(raw: str) -> str:
    text = (raw or "").strip()
    if text.startswith("```json"):
        text = text[7:]
    elif text.startswith("```"):
        text = text[3:]
    if text.endswith("```"):
        text = text[:-3]
    return text.strip()


def _text_list(value, artifact_id: str) -> List[str]:
    """Plan slices must hold lists of strings; anything else is ignored."""
    if value is None:
        return []
    if not isinstance(value, list):
        logger.warning(f"[planner] Ignoring malformed plan entry for {artifact_id}: {value!r}")
        return []
    return [str(v) for v in value if v]


def parse_plan(raw: str, artifacts: Sequence[Artifact]) -> Tuple[Dict[str, SectionPlan], bool]:
    """
    Parse a planning reply into {artifact_id: SectionPlan}.

    Returns (plan, parsed_ok). Unparseable replies give an empty plan for
    every artifact. A reply flagged insufficient_context raises.
    """
    empty = {a.id: SectionPlan() for a in artifacts}
    try:
        data = json.loads(_strip_code_fences(raw))
    except json.JSONDecodeError:
        logger.warning(f"[planner] Plan reply is not valid JSON, using empty plan: {(raw or '')[:200]!r}")
        return empty, False

    if not isinstance(data, dict):
        logger.warning("[planner] Plan reply is not a JSON object, using empty plan")
        return empty, False

    if data.get("insufficient_context") is True:
        raise InsufficientContext(str(data.get("reason") or ""))

    plan: Dict[str, SectionPlan] = {}
    for artifact in artifacts:
        entry = data.get(artifact.id)
        if entry is None and artifact.question_id:
            entry = data.get(artifact.question_id)
        if not isinstance(entry, dict):
            plan[artifact.id] = SectionPlan()
            continue
        plan[artifact.id] = SectionPlan(
            focus_points=_text_list(entry.get("focus_points"), artifact.id),
            avoid_topics=_text_list(entry.get("avoid_topics"), artifact.id),
            suggested_length=entry.get("suggested_length"),
        )
    return plan, True


class BatchPlanner:
    """
    Batch and single-question answer generation for one version.

    Collaborators are injected: the generation client (any object with an
    async generate(...)), the rate limiter and the phase 2 concurrency.
    """

    def __init__(
        self,
        client: Optional[GenerationClient] = None,
        rate_limiter: Optional[RateLimiter] = None,
        concurrency: Optional[int] = None,
    ):
        self.client = client or RegistryGenerationClient()
        self.rate_limiter = rate_limiter or get_rate_limiter()
        self.concurrency = max(1, concurrency or settings.GENERATION_CONCURRENCY)

    # -------------------------------------------------------------------------
    # Checks
    # -------------------------------------------------------------------------

    def _admit(self, key: str, max_requests: int) -> None:
        decision = self.rate_limiter.increment_and_check(key, settings.RATE_LIMIT_WINDOW_MS, max_requests)
        if not decision.allowed:
            logger.info(f"[planner] Rate limit hit key={key} retry_after_ms={decision.retry_after_ms}")
            raise RateLimitExceeded(key.split(":", 1)[-1], decision.retry_after_ms)

    @staticmethod
    def _select_artifacts(version: Version, question_ids: Sequence[str]) -> List[Artifact]:
        by_question = {}
        for artifact in version.artifacts:
            if artifact.question_id and artifact.question_id not in by_question:
                by_question[artifact.question_id] = artifact

        missing = [qid for qid in question_ids if qid not in by_question]
        if missing:
            raise NotFoundError("Artifact for question", ", ".join(missing))
        return [by_question[qid] for qid in question_ids]

    @staticmethod
    def _require_material(inputs: GenerationInputs) -> None:
        if not inputs.has_source_material():
            raise InsufficientContext("no company profile, requirements or reference documents")

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    async def generate_batch(self, db: Session, user_id: str, request: BatchGenerationRequest) -> BatchResult:
        """
        Plan and generate answers for a group of questions.

        Raises before any generation call on: rate limit, empty question list,
        unknown/foreign/frozen version, unknown question, no source material.
        """
        self._admit(f"batch:{user_id}", settings.BATCH_MAX_REQUESTS)

        if not request.question_ids:
            raise ValidationError("question_ids must not be empty")

        version = VersionLifecycleManager.get_version(db, request.version_id, user_id)
        VersionLifecycleManager.assert_mutable(version)
        artifacts = self._select_artifacts(version, request.question_ids)

        inputs = load_generation_inputs(db, version.project_id)
        self._require_material(inputs)
        question_texts = self._question_texts(db, version, artifacts)

        logger.info(
            f"[planner] Batch start version={version.id} questions={len(artifacts)} user={user_id}"
        )

        # Phase 1
        plan_reply = await self.client.generate(
            PLANNING_STAGE,
            PLAN_SYSTEM_PROMPT,
            build_plan_prompt(artifacts, inputs, request.group_title),
        )
        record_usage(db, user_id, plan_reply, "batch_planning", PLANNING_STAGE, version.project_id)
        plan, parsed_ok = parse_plan(plan_reply.text, artifacts)

        # Phase 2
        replies = await self._generate_all(artifacts, question_texts, inputs, plan, request.response_length)

        results = self._store_results(
            db, user_id, "batch_answer", version, artifacts, question_texts, inputs, replies
        )

        ok = sum(1 for r in results if r.success)
        logger.info(f"[planner] Batch done version={version.id} ok={ok}/{len(results)}")

        summary = (
            f"Content plan created for {len(artifacts)} questions"
            if parsed_ok
            else f"Plan unavailable, {len(artifacts)} questions generated without plan"
        )
        return BatchResult(results=results, plan_summary=summary, plan=plan)

    async def generate_single(
        self, db: Session, user_id: str, request: SingleGenerationRequest
    ) -> GenerationItemResult:
        """Generate one answer, no planning phase. Generation errors propagate."""
        self._admit(f"single:{user_id}", settings.SINGLE_MAX_REQUESTS)

        version = VersionLifecycleManager.get_version(db, request.version_id, user_id)
        VersionLifecycleManager.assert_mutable(version)
        artifact = self._select_artifacts(version, [request.question_id])[0]

        inputs = load_generation_inputs(db, version.project_id)
        self._require_material(inputs)
        question_texts = self._question_texts(db, version, [artifact])

        reply = await self._generate_one(
            artifact,
            question_texts[artifact.id],
            inputs,
            SectionPlan(),
            request.response_length,
            request.instructions,
        )
        result = self._store_results(
            db, user_id, "single_answer", version, [artifact], question_texts, inputs, [reply]
        )[0]
        if result.error:
            logger.warning(f"[planner] Single generation for {artifact.id} not stored: {result.error}")
        return result

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    @staticmethod
    def _question_texts(db: Session, version: Version, artifacts: Sequence[Artifact]) -> Dict[str, Optional[str]]:
        """Live template wording when the question still exists, snapshot otherwise."""
        live = {q.id: q.question for q in load_live_template(db, version.project_id)}
        return {
            a.id: live[a.question_id] if a.question_id in live else a.question
            for a in artifacts
        }

    async def _generate_one(
        self,
        artifact: Artifact,
        question_text: Optional[str],
        inputs: GenerationInputs,
        plan: SectionPlan,
        default_length: str,
        instructions: Optional[str] = None,
    ) -> GenerationReply:
        length = plan.suggested_length or default_length
        prompt = build_answer_prompt(artifact, question_text, inputs, plan, length, instructions)
        reply = await self.client.generate(
            ANSWER_STAGE,
            ANSWER_SYSTEM_PROMPT,
            prompt,
            max_tokens=settings.ANSWER_LENGTH_MAX_TOKENS.get(length, settings.ANSWER_LENGTH_MAX_TOKENS["standard"]),
        )
        if not (reply.text or "").strip():
            raise ServiceUnavailable("Empty response from generation provider")
        reply.text = reply.text.strip()
        return reply

    async def _generate_all(
        self,
        artifacts: Sequence[Artifact],
        question_texts: Dict[str, Optional[str]],
        inputs: GenerationInputs,
        plan: Dict[str, SectionPlan],
        default_length: str,
    ) -> List[object]:
        """One entry per artifact in order: the reply or the exception raised."""
        semaphore = asyncio.Semaphore(self.concurrency)

        async def worker(artifact: Artifact):
            async with semaphore:
                return await self._generate_one(
                    artifact,
                    question_texts[artifact.id],
                    inputs,
                    plan.get(artifact.id, SectionPlan()),
                    default_length,
                )

        return await asyncio.gather(*(worker(a) for a in artifacts), return_exceptions=True)

    @staticmethod
    def _store_results(
        db: Session,
        user_id: str,
        operation: str,
        version: Version,
        artifacts: Sequence[Artifact],
        question_texts: Dict[str, Optional[str]],
        inputs: GenerationInputs,
        outcomes: Sequence[object],
    ) -> List[GenerationItemResult]:
        results: List[GenerationItemResult] = []
        # The version may have been frozen by a clone while generation ran
        db.refresh(version)

        for artifact, outcome in zip(artifacts, outcomes):
            item = GenerationItemResult(question_id=artifact.question_id, artifact_id=artifact.id)

            if isinstance(outcome, BaseException):
                if isinstance(outcome, MemoireError):
                    item.error = str(outcome)
                    logger.warning(f"[planner] Generation failed for {artifact.id}: {outcome}")
                else:
                    item.error = "Generation failed"
                    logger.error(
                        f"[planner] Unexpected generation error for {artifact.id}",
                        exc_info=outcome,
                    )
                results.append(item)
                continue

            record_usage(db, user_id, outcome, operation, ANSWER_STAGE, version.project_id)

            try:
                VersionLifecycleManager.assert_mutable(version)
                question_text = question_texts[artifact.id]
                context = build_generation_context(
                    profile=inputs.profile,
                    requirements=inputs.requirements,
                    reference_docs=inputs.reference_docs,
                    question=question_text,
                )
                artifact.text = outcome.text
                artifact.status = "draft"
                artifact.question = question_text
                apply_context(artifact, context)
                db.add(artifact)
                db.commit()
                item.text = outcome.text
            except MemoireError as e:
                db.rollback()
                item.error = str(e)
                logger.warning(f"[planner] Not storing answer for {artifact.id}: {e}")
            except SQLAlchemyError as e:
                db.rollback()
                item.error = "Failed to save generated answer"
                logger.error(f"[planner] Write failed for {artifact.id}: {e}")

            results.append(item)

        return results
