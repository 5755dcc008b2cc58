"""Mixed-script keyword extraction."""

from __future__ import annotations

import re
from typing import Iterable, List, Optional

from .knowledge import KnowledgeBase, get_knowledge_base

CJK_RANGE = "\u4e00-\u9fff"

_PUNCTUATION_RE = re.compile(rf"[^\w\s{CJK_RANGE}]")
_CJK_RUN_RE = re.compile(rf"[{CJK_RANGE}]+")


def clean_text(text: str) -> str:
    """Lowercase ``text`` and replace punctuation with spaces, keeping CJK."""
    return _PUNCTUATION_RE.sub(" ", text.lower())


def cjk_ngrams(run: str, sizes: Iterable[int] = (2, 3)) -> List[str]:
    """Every contiguous n-gram of a CJK run, for each requested size."""
    grams: List[str] = []
    for size in sizes:
        for start in range(len(run) - size + 1):
            grams.append(run[start : start + size])
    return grams


class KeywordExtractor:
    """Turns free text into a permissive set of candidate search terms.

    Extraction favours recall: curated domain terms are matched verbatim,
    every CJK bigram and trigram is emitted, and Latin words longer than one
    letter are kept. Downstream containment matching absorbs the noise.
    """

    def __init__(self, knowledge: Optional[KnowledgeBase] = None) -> None:
        self.knowledge = knowledge or get_knowledge_base()

    def extract(self, text: str) -> List[str]:
        """Return deduplicated keywords in first-seen order."""
        if not text:
            return []
        cleaned = clean_text(text)
        found: List[str] = []

        found.extend(term for term in self.knowledge.important_terms if term in cleaned)

        for run in _CJK_RUN_RE.findall(cleaned):
            found.extend(cjk_ngrams(run))

        latin_only = _CJK_RUN_RE.sub(" ", cleaned)
        found.extend(
            word
            for word in latin_only.split()
            if len(word) > 1 and word.isascii() and word.isalpha()
        )

        return list(dict.fromkeys(found))


__all__ = ["KeywordExtractor", "clean_text", "cjk_ngrams"]
