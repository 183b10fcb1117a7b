"""Best-effort recovery of checklist JSON stored in CRM text properties.

Rich-text property storage may wrap the serialized state in markup or escape
its quotes as HTML entities. ``decode_state_text`` tries, in order:

1. the raw text as JSON,
2. the text with HTML tags stripped,
3. the stripped text with a fixed set of HTML entities decoded.

The recovery is lossy. Anything that still fails to parse into a JSON object
is reported as ``None`` and never guessed at.
"""

from __future__ import annotations

import json
import re
from typing import Any


HTML_TAG_RE = re.compile(r"<[^>]+>")

# &amp; last so "&amp;quot;" decodes to "&quot;" rather than a quote
HTML_ENTITIES: tuple[tuple[str, str], ...] = (
    ("&quot;", '"'),
    ("&#34;", '"'),
    ("&#39;", "'"),
    ("&#x27;", "'"),
    ("&apos;", "'"),
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&nbsp;", " "),
    ("&amp;", "&"),
)


def strip_html_tags(text: str) -> str:
    return HTML_TAG_RE.sub("", text).strip()


def decode_html_entities(text: str) -> str:
    for entity, replacement in HTML_ENTITIES:
        text = text.replace(entity, replacement)
    return text


def _load_object(text: str) -> dict[str, Any] | None:
    try:
        value = json.loads(text)
    except (json.JSONDecodeError, TypeError):
        return None
    # double-encoded: a JSON string holding the object
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError:
            return None
    return value if isinstance(value, dict) else None


def decode_state_text(raw: str | None) -> dict[str, Any] | None:
    if not raw or not raw.strip():
        return None

    payload = _load_object(raw)
    if payload is not None:
        return payload

    stripped = strip_html_tags(raw)
    payload = _load_object(stripped)
    if payload is not None:
        return payload

    return _load_object(decode_html_entities(stripped))
