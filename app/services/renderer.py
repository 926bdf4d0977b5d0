"""Render a classified document into Markdown through a catalog template."""

import json
import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from markdownify import markdownify

from app.services.errors import DataValidationError, TemplateUnavailable
from app.services.normalizer import format_tags, make_frontmatter
from app.services.templates import template_path

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATE = "default"

MINIMAL_TEMPLATE = "# {{title}}\n\n**Source:** {{url}}\n\n{{content}}\n"

# Declared shape of a render payload.
RENDER_SCHEMA: Dict[str, Dict[str, Any]] = {
    "title": {"type": "string", "required": True},
    "content": {"type": "string", "required": True},
    "url": {"type": "string", "required": False},
    "excerpt": {"type": "string", "required": False},
    "genre": {"type": "string", "required": False},
    "tags": {"type": "array", "required": False},
    "keywords": {"type": "array", "required": False},
    "images": {"type": "array", "required": False},
    "reading_time": {"type": "number", "required": False},
    "metadata": {"type": "object", "required": False},
}

_TYPE_CHECKS = {
    "string": lambda v: isinstance(v, str),
    "number": lambda v: isinstance(v, (int, float)) and not isinstance(v, bool),
    "boolean": lambda v: isinstance(v, bool),
    "array": lambda v: isinstance(v, list),
    "object": lambda v: isinstance(v, dict),
}

_EACH_RE = re.compile(r"{{#each\s+([^}]+)}}([\s\S]+?){{/each}}")
_PLACEHOLDER_RE = re.compile(r"{{\s*([a-z_]+)\s*}}")


def to_markdown(body_html: str) -> str:
    return markdownify(body_html, heading_style="ATX").strip()


def validate_payload(payload: Dict[str, Any], schema: Dict[str, Dict[str, Any]] = RENDER_SCHEMA) -> Dict[str, Any]:
    """Return *payload* unchanged if it matches *schema*.

    Raises:
        DataValidationError: on a missing required field or a type mismatch.
    """
    problems = []
    for field, rules in schema.items():
        value = payload.get(field)
        if value is None or value == "":
            if rules.get("required"):
                problems.append(f"{field} is required")
            continue
        check = _TYPE_CHECKS.get(rules.get("type"))
        if check and not check(value):
            problems.append(f"{field} must be {rules['type']}")
    if problems:
        raise DataValidationError(f"Render payload validation failed: {'; '.join(problems)}", payload, schema)
    return payload


def load_template(template_id: str) -> str:
    """Read a template file; a missing one falls back to ``default.md``.

    Raises:
        TemplateUnavailable: if no template file can be read.
    """
    path: Path = template_path(template_id)
    try:
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.info("Template file not found: %s, using default template", path)
            return template_path(DEFAULT_TEMPLATE).read_text(encoding="utf-8")
    except OSError as exc:
        raise TemplateUnavailable(f"Template {template_id} unavailable: {exc}") from exc


def _lookup(payload: Dict[str, Any], dotted: str) -> Any:
    value: Any = payload
    for key in dotted.strip().split("."):
        if not isinstance(value, dict):
            return None
        value = value.get(key)
    return value


def _expand_each(template: str, payload: Dict[str, Any]) -> str:
    def replace(match: re.Match) -> str:
        items = _lookup(payload, match.group(1))
        if not isinstance(items, list):
            return ""
        body = match.group(2)
        rendered = []
        for item in items:
            chunk = body
            if isinstance(item, dict):
                for key, value in item.items():
                    chunk = chunk.replace(f"{{{{this.{key}}}}}", str(value))
            else:
                chunk = chunk.replace("{{this}}", str(item))
            rendered.append(chunk.strip())
        return "\n".join(rendered)

    return _EACH_RE.sub(replace, template)


def _placeholder_values(payload: Dict[str, Any]) -> Dict[str, str]:
    keywords = payload.get("keywords") or []
    return {
        "title": payload.get("title") or "Untitled",
        "url": payload.get("url") or "",
        "created_at": payload.get("created_at") or datetime.now(timezone.utc).isoformat(),
        "tags": format_tags(payload.get("tags") or []),
        "content": payload.get("content") or "",
        "excerpt": payload.get("excerpt") or "",
        "genre": payload.get("genre") or "",
        "keywords": "\n".join(f"- {k}" for k in keywords),
        "reading_time": str(payload.get("reading_time") or 0),
        "metadata": json.dumps(payload.get("metadata") or {}, indent=2, ensure_ascii=False, default=str),
    }


def _fill(template: str, template_id: str, payload: Dict[str, Any]) -> str:
    values = _placeholder_values(payload)
    body = _expand_each(template, payload)
    # Single pass so substituted content is never re-scanned for placeholders.
    body = _PLACEHOLDER_RE.sub(lambda m: values.get(m.group(1), m.group(0)), body)

    frontmatter = make_frontmatter(
        {
            "title": values["title"],
            "source": values["url"],
            "created": values["created_at"],
            "genre": values["genre"],
            "template": template_id,
            "tags": list(payload.get("tags") or []),
        }
    )
    return f"{frontmatter}\n\n{body.strip()}\n"


def render(template_id: Optional[str], payload: Dict[str, Any]) -> str:
    """Fill the *template_id* template with *payload* and prepend frontmatter."""
    template_id = template_id or DEFAULT_TEMPLATE
    return _fill(load_template(template_id), template_id, payload)


def render_minimal(template_id: Optional[str], payload: Dict[str, Any]) -> str:
    """Degraded rendering that needs no template file."""
    return _fill(MINIMAL_TEMPLATE, "minimal", payload)
