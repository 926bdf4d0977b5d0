"""TF-IDF keyword ranking.

``weight = tf * idf`` with ``idf = 1 + ln(N / (1 + df))`` where ``N`` counts
the corpus documents plus the ranked text itself.  Without a corpus the
weight is the raw term frequency.
"""

import math
import re
from collections import Counter
from typing import FrozenSet, Iterable, List, Optional, Tuple

from app.models.keyword import KeywordScore

TOP_N = 10

_TOKEN_RE = re.compile(r"[a-z0-9]+(?:'[a-z]+)?")

STOPWORDS = frozenset(
    """
    a about above after again against all am an and any are as at be because been
    before being below between both but by can could did do does doing down during
    each few for from further had has have having he her here hers herself him himself
    his how i if in into is it its itself just me more most my myself no nor not now
    of off on once only or other our ours ourselves out over own same she should so
    some such than that the their theirs them themselves then there these they this
    those through to too under until up very was we were what when where which while
    who whom why will with would you your yours yourself yourselves also may might
    must one two get got like make made use used using well many much new way
    """.split()
)


def tokenize(text: str) -> List[str]:
    """Lowercase *text* and split it on whitespace and punctuation."""
    return _TOKEN_RE.findall(text.lower())


def _terms(text: str) -> List[str]:
    return [
        token
        for token in tokenize(text)
        if token not in STOPWORDS and len(token) > 1 and not token.isdigit()
    ]


class KeywordCorpus:
    """Append-only collection of term sets used for document frequency.

    Each entry is an immutable ``frozenset``; :meth:`add` publishes a new
    tuple instead of mutating the current one, so readers holding a
    :meth:`snapshot` never observe a partial update.
    """

    def __init__(self, documents: Iterable[str] = ()):
        self._documents: Tuple[FrozenSet[str], ...] = tuple(
            frozenset(_terms(text)) for text in documents
        )

    def __len__(self) -> int:
        return len(self._documents)

    def add(self, text: str) -> None:
        self._documents = self._documents + (frozenset(_terms(text)),)

    def snapshot(self) -> Tuple[FrozenSet[str], ...]:
        return self._documents


def rank_keywords(
    text: str,
    corpus: Optional[KeywordCorpus] = None,
    top_n: int = TOP_N,
) -> List[KeywordScore]:
    """Return up to *top_n* unique terms of *text*, heaviest first.

    Ties are broken alphabetically so equal input always ranks equally.
    """
    frequencies = Counter(_terms(text))
    if not frequencies:
        return []

    documents = corpus.snapshot() if corpus is not None else ()
    if documents:
        total = len(documents) + 1

        def weight(term: str, tf: int) -> float:
            df = 1 + sum(1 for doc in documents if term in doc)
            return tf * (1 + math.log(total / (1 + df)))

    else:

        def weight(term: str, tf: int) -> float:
            return float(tf)

    scored = sorted(
        ((term, weight(term, tf)) for term, tf in frequencies.items()),
        key=lambda item: (-item[1], item[0]),
    )
    return [KeywordScore(term=term, weight=round(w, 6)) for term, w in scored[:top_n]]
