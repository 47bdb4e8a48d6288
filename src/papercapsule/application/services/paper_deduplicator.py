# src/papercapsule/application/services/paper_deduplicator.py
"""
Cross-source paper deduplication.

Sources disagree on identifiers, so papers are matched on a normalized title
key only. When several records share a key the one with the most citations
survives; the first-seen record wins a tie.
"""

from __future__ import annotations

import re
from typing import Dict, Iterable, List

from papercapsule.domain.paper import Paper

TITLE_KEY_LENGTH = 50

_NON_ALNUM_RX = re.compile(r"[^a-z0-9]")


def title_key(title: str) -> str:
    """Lowercase, drop everything outside [a-z0-9], keep the first 50 chars."""
    return _NON_ALNUM_RX.sub("", (title or "").lower())[:TITLE_KEY_LENGTH]


def dedupe(papers: Iterable[Paper]) -> List[Paper]:
    """
    Collapse near-duplicate papers.

    Output keeps the first-occurrence order of each key; the retained record
    for a key may be a later, more-cited variant. Input objects are not mutated.
    """
    order: List[str] = []
    best: Dict[str, Paper] = {}

    for paper in papers:
        key = title_key(paper.title)
        current = best.get(key)
        if current is None:
            order.append(key)
            best[key] = paper
        elif paper.citation_count > current.citation_count:
            best[key] = paper

    return [best[key] for key in order]
