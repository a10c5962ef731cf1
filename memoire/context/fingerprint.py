# FILE: memoire/context/fingerprint.py
"""
Content fingerprints for the four input categories.

Every digest is the first 16 hex characters of an MD5 over a canonical
serialization. These are change detectors, not security primitives.
Absent and empty inputs both map to "".

All functions are total: values are coerced with str() and missing
attributes count as empty.
"""

import hashlib
import json
from datetime import datetime
from typing import Any, Iterable, Mapping, Optional

from memoire.context.schemas import GenerationContext, SourceCounts

DIGEST_LENGTH = 16


def _digest(content: str) -> str:
    return hashlib.md5(content.encode("utf-8")).hexdigest()[:DIGEST_LENGTH]


def _field(item: Any, name: str) -> str:
    """Read a field from a mapping or an object, "" when missing or None."""
    if isinstance(item, Mapping):
        value = item.get(name)
    else:
        value = getattr(item, name, None)
    return "" if value is None else str(value)


def fingerprint_profile(fields: Optional[Mapping[str, Any]]) -> str:
    if not fields:
        return ""
    canonical = json.dumps(dict(fields), sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)
    return _digest(canonical)


def fingerprint_requirements(items: Optional[Iterable[Any]]) -> str:
    """Order-independent: items are sorted by id before hashing."""
    rows = sorted(items or [], key=lambda r: _field(r, "id"))
    if not rows:
        return ""
    joined = "|".join(
        f"{_field(r, 'id')}:{_field(r, 'title')}:{_field(r, 'content')}" for r in rows
    )
    return _digest(joined)


def fingerprint_reference_docs(items: Optional[Iterable[Any]]) -> str:
    rows = sorted(items or [], key=lambda d: _field(d, "id"))
    if not rows:
        return ""
    joined = "|".join(f"{_field(d, 'id')}:{_field(d, 'extracted_text')}" for d in rows)
    return _digest(joined)


def fingerprint_question(text: Optional[str]) -> str:
    if not text:
        return ""
    return _digest(str(text))


def build_generation_context(
    profile: Optional[Mapping[str, Any]] = None,
    requirements: Optional[Iterable[Any]] = None,
    reference_docs: Optional[Iterable[Any]] = None,
    question: Optional[str] = None,
    generated_at: Optional[datetime] = None,
) -> GenerationContext:
    """Fingerprint every category at once and stamp the result."""
    requirements = list(requirements or [])
    reference_docs = list(reference_docs or [])
    return GenerationContext(
        company_profile_hash=fingerprint_profile(profile),
        requirements_hash=fingerprint_requirements(requirements),
        reference_docs_hash=fingerprint_reference_docs(reference_docs),
        question_hash=fingerprint_question(question),
        generated_at=generated_at or datetime.utcnow(),
        source_counts=SourceCounts(
            requirements=len(requirements),
            reference_docs=len(reference_docs),
        ),
    )
