"""Slugs, frontmatter and folder layout for rendered documents."""

import re
import unicodedata
from typing import Iterable, NamedTuple, Optional, Sequence
from urllib.parse import urlparse

MAX_SLUG_LENGTH = 200
UNCATEGORIZED = "uncategorized"


def slugify(value: str) -> str:
    """Lowercase, ASCII-only, hyphen-separated form of *value* (may be empty)."""
    slug = unicodedata.normalize("NFKD", value)
    slug = slug.encode("ascii", "ignore").decode("ascii")
    slug = re.sub(r"[^a-z0-9]+", "-", slug.lower())
    return slug.strip("-")


def generate_slug(title: str, url: Optional[str] = None) -> str:
    """Generate a file-safe slug from *title*, falling back to the URL path.

    The result never exceeds ``MAX_SLUG_LENGTH`` characters.
    """
    slug = slugify(title)
    if not slug and url:
        parsed = urlparse(url)
        path = re.sub(r"\.[^/]+$", "", parsed.path.strip("/"))
        slug = slugify(path.split("/")[-1] if path else parsed.netloc)
    return slug[:MAX_SLUG_LENGTH].rstrip("-") or "untitled"


class FolderStructure(NamedTuple):
    path: str
    category: str
    subcategory: str


def folder_structure(genre: str, keywords: Sequence[str]) -> FolderStructure:
    """Return ``<genre>/<first keyword>/<keywords 2-3>`` as a relative path."""
    category = slugify(genre) or UNCATEGORIZED
    subcategory = slugify(keywords[0]) if keywords else ""
    subcategory = subcategory or UNCATEGORIZED
    parts = [category, subcategory]
    leaf = "-".join(filter(None, (slugify(k) for k in keywords[1:3])))
    if leaf:
        parts.append(leaf)
    return FolderStructure(path="/".join(parts), category=category, subcategory=subcategory)


def make_frontmatter(fields: dict) -> str:
    """Return a YAML frontmatter block; list values become inline sequences."""
    lines = ["---"]
    for key, value in fields.items():
        if value is None or value == "":
            continue
        if isinstance(value, (list, tuple)):
            items = ", ".join(f'"{_escape_yaml(str(v))}"' for v in value)
            lines.append(f"{key}: [{items}]")
        elif isinstance(value, bool):
            lines.append(f"{key}: {'true' if value else 'false'}")
        elif isinstance(value, (int, float)):
            lines.append(f"{key}: {value}")
        else:
            lines.append(f'{key}: "{_escape_yaml(str(value))}"')
    lines.append("---")
    return "\n".join(lines)


def format_tags(tags: Iterable[str]) -> str:
    """Render tags as space-separated ``#tag`` tokens."""
    return " ".join(f"#{slugify(tag)}" for tag in tags if slugify(tag))


def _escape_yaml(value: str) -> str:
    """Escape characters that would break inline double-quoted YAML strings."""
    return value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", " ")
