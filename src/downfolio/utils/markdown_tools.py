"""Markdown helpers: code-fence stripping, terminal preview, validation."""

from __future__ import annotations

import html
import re
from dataclasses import dataclass

import markdown as md
import yaml

_OPENING_FENCE = re.compile(r"^```(?:markdown)?[ \t]*\n?", re.IGNORECASE)
_CLOSING_FENCE = re.compile(r"\n?```\s*$")
_FRONT_MATTER = re.compile(r"\A---\s*\n(.*?)\n---\s*(?:\n|\Z)", re.DOTALL)
_HEADING = re.compile(r"^#+\s+.+$", re.MULTILINE)

PREVIEW_LENGTH = 500


def strip_code_fences(text: str) -> str:
    """Remove a leading ```markdown (or bare ```) fence and its closing ``` fence.

    Text that does not open with a fence is only trimmed, so the function is
    idempotent and leaves a code block at the end of the document alone.
    """
    text = text.strip()
    unfenced = _OPENING_FENCE.sub("", text, count=1)
    if unfenced == text:
        return text
    return _CLOSING_FENCE.sub("", unfenced, count=1).strip()


def to_plain_text(md_text: str) -> str:
    """Render markdown to HTML, then drop tags for terminal display."""
    rendered = md.markdown(md_text, extensions=["tables", "fenced_code"])
    text = re.sub(r"<[^>]*>", "", rendered)
    return html.unescape(text).strip()


def preview_text(md_text: str, limit: int = PREVIEW_LENGTH) -> str:
    text = to_plain_text(md_text)
    if len(text) > limit:
        return text[:limit] + "..."
    return text


@dataclass
class ValidationReport:
    front_matter_valid: bool
    has_content: bool
    has_headers: bool

    @property
    def ok(self) -> bool:
        return self.front_matter_valid and self.has_content


def validate_markdown(content: str) -> ValidationReport:
    """Check YAML front matter (if any), emptiness, and presence of headings."""
    front_matter_valid = True
    match = _FRONT_MATTER.match(content)
    if match:
        try:
            yaml.safe_load(match.group(1))
        except yaml.YAMLError:
            front_matter_valid = False

    return ValidationReport(
        front_matter_valid=front_matter_valid,
        has_content=bool(content.strip()),
        has_headers=bool(_HEADING.search(content)),
    )
