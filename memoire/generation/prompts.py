# FILE: memoire/generation/prompts.py
"""Prompt builders for the planning and answer stages."""

from typing import List, Optional, Sequence

from memoire.generation.schemas import SectionPlan
from memoire.projects.schemas import GenerationInputs
from memoire.versions.models import Artifact

PLAN_SYSTEM_PROMPT = (
    "You are an expert planner for technical tender responses. "
    "You answer ONLY with valid JSON."
)

ANSWER_SYSTEM_PROMPT = """You are an experienced technical writer answering tender questions.

STYLE:
- Complete sentences, professional tone
- Bullet lists (dashes -) for enumerations
- Precise domain vocabulary

AVOID:
- Titles or headers
- Restating the question
- Repeating information covered by other questions
- Generic conclusions

FORMAT: Plain text with dashes for lists."""

LENGTH_INSTRUCTIONS = {
    "short": "500-800 characters",
    "standard": "800-1500 characters",
    "detailed": "1500-2500 characters",
}

# Caps applied to prompt context, fingerprints always cover the full inputs
MAX_REQUIREMENTS_IN_PROMPT = 20
MAX_DOCS_IN_PROMPT = 5
MAX_DOC_CHARS = 1500


def _profile_lines(inputs: GenerationInputs) -> List[str]:
    if not inputs.profile:
        return []
    return [
        f"{key}: {value}"
        for key, value in sorted(inputs.profile.items())
        if value and str(value).strip()
    ]


def build_plan_prompt(
    artifacts: Sequence[Artifact],
    inputs: GenerationInputs,
    group_title: Optional[str] = None,
) -> str:
    questions = "\n".join(
        f"Q{i + 1} [{a.id}]: {a.question or a.title}" for i, a in enumerate(artifacts)
    )

    available = []
    profile = _profile_lines(inputs)
    if profile:
        available.append(f"- Company profile with {len(profile)} filled field(s)")
    docs = [d for d in inputs.reference_docs if (d.extracted_text or "").strip()]
    if docs:
        available.append(f"- {len(docs)} reference document(s)")
    if inputs.requirements:
        available.append(f"- {len(inputs.requirements)} requirement(s) to satisfy")

    return f"""Analyze these {len(artifacts)} questions, which belong to the same chapter "{group_title or 'unspecified'}", and plan how to split the content between them.

## Questions
{questions}

## Available context
{chr(10).join(available) or '- none'}

## Task
For EACH question, decide:
1. The key points to cover (which will NOT be repeated in other questions)
2. The topics to avoid (because another question covers them)
3. The suggested length: "short" if details live elsewhere, "standard" otherwise, "detailed" for the core question

Answer ONLY with valid JSON in this format, keyed by the exact ids in brackets:
{{
  "<id>": {{
    "focus_points": ["point 1", "point 2"],
    "avoid_topics": ["topic covered in Q2"],
    "suggested_length": "standard"
  }}
}}

If the available context is far too thin to answer these questions at all, answer instead:
{{"insufficient_context": true, "reason": "<what is missing>"}}"""


def build_answer_prompt(
    artifact: Artifact,
    question_text: Optional[str],
    inputs: GenerationInputs,
    plan: SectionPlan,
    length: str,
    instructions: Optional[str] = None,
) -> str:
    parts = [f"## Question\nTitle: {artifact.title}"]
    if question_text:
        parts.append(f"Question: {question_text}")

    if plan.focus_points or plan.avoid_topics:
        parts.append("\n## Answer plan (shared with the other questions of the chapter)")
    if plan.focus_points:
        parts.append("### Key points for THIS answer:\n" + "\n".join(f"- {p}" for p in plan.focus_points))
    if plan.avoid_topics:
        parts.append(
            "### Topics NOT to cover (handled by other questions):\n"
            + "\n".join(f"- {t}" for t in plan.avoid_topics)
        )
    parts.append(f"\n### Target length: {LENGTH_INSTRUCTIONS.get(length, LENGTH_INSTRUCTIONS['standard'])}")

    profile = _profile_lines(inputs)
    if profile:
        parts.append("\n## Company profile\n" + "\n".join(profile))

    requirements = inputs.requirements[:MAX_REQUIREMENTS_IN_PROMPT]
    if requirements:
        lines = []
        for i, r in enumerate(requirements):
            line = f"{i + 1}. {r.title or r.id}"
            if r.content:
                line += f" - {r.content[:150]}"
            lines.append(line)
        parts.append("\n## Requirements to satisfy\n" + "\n".join(lines))

    docs = [d for d in inputs.reference_docs if (d.extracted_text or "").strip()][:MAX_DOCS_IN_PROMPT]
    if docs:
        parts.append(
            "\n## Reference documents\n"
            + "\n\n".join(f"### {d.name or d.id}\n{d.extracted_text[:MAX_DOC_CHARS]}" for d in docs)
        )

    if instructions:
        parts.append(f"\n## Additional instructions\n{instructions}")

    parts.append(
        "\n## RULES\n"
        "- Start DIRECTLY with the content (no title, no restating the question)\n"
        "- Do NOT repeat the topics to avoid\n"
        "- Use bullet lists (dashes -) for enumerations\n"
        "- Every sentence must carry concrete information\n"
        "- No generic conclusion\n\n"
        "Write the answer now."
    )
    return "\n".join(parts)
