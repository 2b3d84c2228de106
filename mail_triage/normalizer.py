"""
Result normalization: map legacy category labels onto the canonical pair and
merge classifier verdicts into TriageEmail records.
"""

import logging
from typing import Dict, Iterable, List, Sequence

from .models import Category, ClassificationResult, EmailEnvelope, TriageEmail

logger = logging.getLogger(__name__)

# Labels emitted by older prompt versions
CATEGORY_REWRITES: Dict[str, str] = {
    "MOST_IMPORTANT": Category.ACTIONABLE.value,
    "MODERATELY_IMPORTANT": Category.INFORMATIONAL.value,
}

CANONICAL_CATEGORIES = frozenset(c.value for c in Category)


def normalize_category(category: str) -> str:
    """Rewrite a legacy label; anything else is returned unchanged."""
    return CATEGORY_REWRITES.get(category, category)


def normalize_emails(emails: Iterable[TriageEmail]) -> List[TriageEmail]:
    normalized: List[TriageEmail] = []
    for email in emails:
        category = normalize_category(email.category)
        if category != email.category:
            email = email.model_copy(update={"category": category})
        normalized.append(email)
    return normalized


def retain_canonical(emails: Iterable[TriageEmail]) -> List[TriageEmail]:
    """Drop records whose category is neither ACTIONABLE nor INFORMATIONAL."""
    kept: List[TriageEmail] = []
    for email in emails:
        if email.category in CANONICAL_CATEGORIES:
            kept.append(email)
        else:
            logger.warning(
                "Dropping email id=%s with non-canonical category %r.",
                email.id,
                email.category,
            )
    return kept


def merge_results(
    envelopes: Sequence[EmailEnvelope],
    results: Iterable[ClassificationResult],
) -> List[TriageEmail]:
    """
    Join classifier verdicts with their envelopes.

    Records come back in batch order (newest first). Results are expected to
    carry in-range indices already; a repeated index keeps its first verdict.
    """
    by_index: Dict[int, ClassificationResult] = {}
    for result in results:
        if result.email_index in by_index:
            logger.warning(
                "Duplicate classification for email_index=%d; keeping the first.",
                result.email_index,
            )
            continue
        by_index[result.email_index] = result

    merged: List[TriageEmail] = []
    for idx in sorted(by_index):
        result = by_index[idx]
        envelope = envelopes[idx]
        merged.append(
            TriageEmail(
                **envelope.model_dump(),
                category=result.category,
                summary=result.summary,
                action=result.action,
                context=list(result.context),
            )
        )
    return merged


def build_triage_emails(
    envelopes: Sequence[EmailEnvelope],
    results: Iterable[ClassificationResult],
) -> List[TriageEmail]:
    """Merge, normalize and filter: the full normalizer stage."""
    return retain_canonical(normalize_emails(merge_results(envelopes, results)))
