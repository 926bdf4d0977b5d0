"""Genre classification by three independent voters.

Voters
------
``structural``
    Fixed precedence over the document's structural flags:
    code block → ``code_snippet``, ordered steps → ``tutorial``,
    citations → ``research_note``, article root → ``blog_post``.

``lexical``
    Commercial-intent language forces ``affiliate_post``.  Otherwise the
    genre whose indicator words occur most often in the body text wins.

``metadata``
    Declared ``og:type`` / ``article:type``, schema type and ``<body>``
    class hints, looked up in fixed tables.

Each voter either votes or abstains (``None``).  The votes are reduced by
:func:`resolve_votes`: plurality wins, ties go to the higher-priority voter
(structural > lexical > metadata), and unanimous abstention yields
``blog_post``.  The classifier never fails for lack of an opinion.
"""

import re
from collections import Counter
from typing import Dict, Optional, Sequence, Tuple

from app.models.document import DocumentMetadata, ExtractedContent, ParsedDocument
from app.models.genre import DEFAULT_GENRE, Genre, GenreVote
from app.services.keywords import tokenize

VOTER_PRIORITY = ("structural", "lexical", "metadata")

# ---------------------------------------------------------------------------
# Lexical signals
# ---------------------------------------------------------------------------

# Commercial-intent families.  "top ... products" must sit in one sentence.
_COMMERCIAL_PATTERNS: Dict[str, re.Pattern] = {
    "comparison": re.compile(r"\b(?:review|reviews|comparison|vs|versus)\b", re.IGNORECASE),
    "ranking": re.compile(
        r"\b(?:best|top|recommended)\b[^.!?\n]*\b(?:products?|tools?|software|picks?)\b",
        re.IGNORECASE,
    ),
    "pricing": re.compile(r"\b(?:price|prices|pricing|cost|costs)\b|\$\s?\d", re.IGNORECASE),
    "purchase": re.compile(r"\b(?:buy|purchase|order now|add to cart|discount code)\b", re.IGNORECASE),
    "affiliate": re.compile(r"\b(?:affiliate|commission)\b", re.IGNORECASE),
}

# Families that signal commercial intent on their own.
_DECISIVE_FAMILIES = frozenset({"affiliate"})

# Commercial intent needs this many distinct families unless a decisive one matched.
_MIN_COMMERCIAL_FAMILIES = 2

# Checked in this order; on equal non-zero counts the earlier genre wins.
INDICATORS: Tuple[Tuple[Genre, Tuple[str, ...]], ...] = (
    (Genre.TUTORIAL, ("step", "guide", "how to", "tutorial", "learn")),
    (Genre.CODE_SNIPPET, ("function", "code", "class", "method", "implementation")),
    (Genre.RESEARCH_NOTE, ("study", "research", "analysis", "findings", "methodology")),
    (Genre.BLOG_POST, ("blog", "article", "post", "opinion", "thoughts")),
    (Genre.AFFILIATE_POST, ("review", "comparison", "best", "top", "recommended", "price", "buy")),
)

# ---------------------------------------------------------------------------
# Metadata lookup tables
# ---------------------------------------------------------------------------

_DECLARED_TYPE_GENRES = {
    "article": Genre.BLOG_POST,
    "blog": Genre.BLOG_POST,
    "blogposting": Genre.BLOG_POST,
    "tutorial": Genre.TUTORIAL,
    "howto": Genre.TUTORIAL,
    "review": Genre.AFFILIATE_POST,
    "product": Genre.AFFILIATE_POST,
}

# Substring of the schema type → genre, checked in order.
_SCHEMA_TYPE_GENRES = (
    ("TechArticle", Genre.TUTORIAL),
    ("HowTo", Genre.TUTORIAL),
    ("ScholarlyArticle", Genre.RESEARCH_NOTE),
    ("SoftwareSourceCode", Genre.CODE_SNIPPET),
    ("Review", Genre.AFFILIATE_POST),
    ("Product", Genre.AFFILIATE_POST),
    ("BlogPosting", Genre.BLOG_POST),
)

_CLASS_HINT_GENRES = (
    ("tutorial", Genre.TUTORIAL),
    ("docs", Genre.TUTORIAL),
    ("post", Genre.BLOG_POST),
)


def structural_vote(document: ParsedDocument) -> GenreVote:
    if document.has_code_block:
        return Genre.CODE_SNIPPET
    if document.has_ordered_steps:
        return Genre.TUTORIAL
    if document.has_citation_markers:
        return Genre.RESEARCH_NOTE
    if document.has_article_root:
        return Genre.BLOG_POST
    return None


def has_commercial_intent(text: str) -> bool:
    """Return True when *text* reads like review, pricing or affiliate copy.

    A lone mention of e.g. "review" is not enough; at least two distinct
    commercial families must match, unless affiliate/commission language is
    present.
    """
    matched = {name for name, pattern in _COMMERCIAL_PATTERNS.items() if pattern.search(text)}
    if matched & _DECISIVE_FAMILIES:
        return True
    return len(matched) >= _MIN_COMMERCIAL_FAMILIES


_SUFFIXES = ("", "s", "es", "ed", "ing", "ings", "er", "ers")


def _inflects(token: str, keyword: str) -> bool:
    return token.startswith(keyword) and token[len(keyword):] in _SUFFIXES


def indicator_counts(text: str) -> Dict[Genre, int]:
    """Count indicator hits per genre.

    Single words also match their plain inflections ("steps", "learning");
    phrases are matched against the lowercased token stream.
    """
    tokens = tokenize(text)
    lowered = " ".join(tokens)
    counts: Dict[Genre, int] = {}
    for genre, keywords in INDICATORS:
        total = 0
        for keyword in keywords:
            if " " in keyword:
                total += len(re.findall(r"\b" + re.escape(keyword) + r"\b", lowered))
            else:
                total += sum(1 for token in tokens if _inflects(token, keyword))
        counts[genre] = total
    return counts


def lexical_vote(text: str) -> GenreVote:
    if has_commercial_intent(text):
        return Genre.AFFILIATE_POST
    counts = indicator_counts(text)
    best: Optional[Genre] = None
    best_count = 0
    for genre, _ in INDICATORS:
        if counts[genre] > best_count:
            best, best_count = genre, counts[genre]
    return best


def _declared_type_genre(value: Optional[str]) -> GenreVote:
    if not value:
        return None
    return _DECLARED_TYPE_GENRES.get(value.strip().lower())


def metadata_vote(metadata: DocumentMetadata) -> GenreVote:
    for declared in (metadata.og_type, metadata.article_type):
        genre = _declared_type_genre(declared)
        if genre is not None:
            return genre
    if metadata.schema_type:
        for marker, genre in _SCHEMA_TYPE_GENRES:
            if marker in metadata.schema_type:
                return genre
    for css_class in metadata.body_classes:
        lowered = css_class.lower()
        for hint, genre in _CLASS_HINT_GENRES:
            if hint in lowered:
                return genre
    return None


def resolve_votes(votes: Sequence[Tuple[str, GenreVote]]) -> Genre:
    """Plurality over non-abstaining votes; *votes* must be in priority order."""
    counts = Counter(genre for _, genre in votes if genre is not None)
    if not counts:
        return DEFAULT_GENRE
    top = max(counts.values())
    for _, genre in votes:
        if genre is not None and counts[genre] == top:
            return genre
    return DEFAULT_GENRE


def collect_votes(
    document: ParsedDocument, content: ExtractedContent
) -> Tuple[Tuple[str, GenreVote], ...]:
    return (
        ("structural", structural_vote(document)),
        ("lexical", lexical_vote(content.body_text)),
        ("metadata", metadata_vote(document.metadata)),
    )


def classify(document: ParsedDocument, content: ExtractedContent) -> Genre:
    """Return the genre of *document*; defaults to ``blog_post``."""
    return resolve_votes(collect_votes(document, content))
