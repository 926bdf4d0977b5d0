import re

from bs4 import BeautifulSoup, Comment, Tag

# Matches `display:none` or `visibility:hidden` in inline style attributes
_HIDDEN_STYLE_RE = re.compile(
    r"(display\s*:\s*none|visibility\s*:\s*hidden)", re.IGNORECASE
)

# Tags whose entire subtree is never body content
_REMOVE_TAGS = {
    "script",
    "style",
    "noscript",
    "iframe",
    "object",
    "embed",
    "link",
    "meta",
    "svg",
    "canvas",
    "template",
    "form",
    "button",
}

# Landmarks that are page chrome wherever they appear
_CHROME_TAGS = ("nav", "aside")

# Only chrome when they frame the whole page, not an article
_PAGE_FRAME_TAGS = ("header", "footer")

_JUNK_ATTRS = re.compile(r"^(style|on\w+)$", re.IGNORECASE)

# class / id tokens that mark page chrome rather than content
_NOISE_KEYWORDS = (
    "nav",
    "navbar",
    "navigation",
    "menu",
    "sidebar",
    "side-bar",
    "banner",
    "popup",
    "modal",
    "cookie",
    "gdpr",
    "ad",
    "ads",
    "advert",
    "advertisement",
    "sponsored",
    "footer",
    "breadcrumb",
    "breadcrumbs",
    "pagination",
    "social",
    "share",
    "related",
    "recommended-posts",
    "subscribe",
    "newsletter",
    "promo",
    "overlay",
    "comments",
    "widget",
    "author-bio",
    "author-box",
    "site-header",
    "site-footer",
    "search-form",
)

# A keyword only counts when it is a whole ``-``/``_``-delimited segment, so
# ``post-header-image`` is kept while ``site-header`` is dropped.
_NOISE_RE = re.compile(
    r"(?:^|[-_])(?:" + "|".join(re.escape(k) for k in _NOISE_KEYWORDS) + r")(?:$|[-_])",
    re.IGNORECASE,
)

_BLANK_LINES_RE = re.compile(r"\n{3,}")


def _has_noise_attr(tag: Tag) -> bool:
    """Return True when a tag's id or class marks it as page chrome."""
    if not tag.attrs:
        return False
    values = []
    if tag.get("id"):
        values.append(str(tag["id"]))
    values.extend(tag.get("class", []))
    return any(_NOISE_RE.search(value) for value in values)


def _is_hidden(tag: Tag) -> bool:
    if str(tag.get("aria-hidden", "")).lower() == "true":
        return True
    inline_style = tag.get("style", "")
    return bool(inline_style and _HIDDEN_STYLE_RE.search(inline_style))


def sanitize(html: str) -> BeautifulSoup:
    """Parse *html* and strip scripting, hidden elements and page chrome.

    Returns a fresh tree; the caller's markup and any other parsed tree are
    left untouched.
    """
    soup = BeautifulSoup(html, "lxml")

    for tag in soup.find_all(_REMOVE_TAGS):
        tag.decompose()

    for tag in soup.find_all(_CHROME_TAGS):
        tag.decompose()

    body = soup.body
    if body is not None:
        for tag in body.find_all(_PAGE_FRAME_TAGS, recursive=False):
            tag.decompose()

    for comment in soup.find_all(string=lambda text: isinstance(text, Comment)):
        comment.extract()

    for tag in soup.find_all(True):
        # Descendants of an already-removed element are detached but still
        # yielded by the iterator.
        if not isinstance(tag, Tag) or tag.decomposed:
            continue
        if tag.name in ("html", "body"):
            continue
        if _has_noise_attr(tag) or _is_hidden(tag):
            tag.decompose()
            continue
        junk = [attr for attr in tag.attrs if _JUNK_ATTRS.match(attr)]
        for attr in junk:
            del tag[attr]

    return soup


def visible_text(node) -> str:
    """Return the text of *node* with one block per line and no blank runs."""
    text = node.get_text(separator="\n")
    lines = [line.strip() for line in text.splitlines()]
    joined = "\n".join(line for line in lines if line)
    return _BLANK_LINES_RE.sub("\n\n", joined).strip()
