"""Content sanitation for inline code blocks and managed file bodies.

Checks run in a fixed order: type check, line-ending and control-character
cleanup, template-escape rejection, wrapper-tag stripping (warn and continue),
byte cap, and a warn-only scan for embed-capable markup. Content is stored
and emitted verbatim afterwards; nothing here makes it safe to execute.
"""

from __future__ import annotations

import re
from typing import Any

from pydantic import BaseModel, ConfigDict

from snippetvault.core.hasher import utf8_length
from snippetvault.models.outcomes import Notice, NoticeCode, Rejection, RejectionReason

# Control characters other than tab and newline.
_CONTROL_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
# Host-language template escapes: <?php, <?=, and bare <?.
_TEMPLATE_ESCAPE_RE = re.compile(r"<\?(php|=)?", re.IGNORECASE)
# A wrapper tag pair around the payload. The payload is emitted inside one already.
_WRAPPER_RE = re.compile(r"<\s*script[^>]*>(.*?)<\s*/\s*script\s*>", re.IGNORECASE | re.DOTALL)
_EMBED_TAGS = ("iframe", "object", "embed", "link", "style", "meta")
_EMBED_RE = re.compile(r"<\s*(" + "|".join(_EMBED_TAGS) + r")\b", re.IGNORECASE)


class SanitizedContent(BaseModel):
    """Outcome of sanitizing one content block."""

    model_config = ConfigDict(frozen=True)

    content: str = ""
    notices: list[Notice] = []
    rejection: Rejection | None = None

    @property
    def ok(self) -> bool:
        return self.rejection is None


def _reject(reason: RejectionReason, message: str) -> SanitizedContent:
    return SanitizedContent(rejection=Rejection(reason=reason, message=message))


def sanitize_content(raw: Any, *, max_bytes: int) -> SanitizedContent:
    """Run the content checks and return clean content or a rejection."""
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError:
            return _reject(
                RejectionReason.INVALID_CONTENT_TYPE,
                "Content contains invalid UTF-8 sequences.",
            )
    if not isinstance(raw, str):
        return _reject(RejectionReason.INVALID_CONTENT_TYPE, "Content must be plain text.")

    notices: list[Notice] = []
    text = raw.replace("\r\n", "\n")

    cleaned = _CONTROL_RE.sub("", text)
    if cleaned != text:
        notices.append(Notice(
            code=NoticeCode.CONTROL_CHARACTERS_STRIPPED,
            message="Disallowed control characters were removed.",
        ))
    text = cleaned

    if _TEMPLATE_ESCAPE_RE.search(text):
        return _reject(
            RejectionReason.DISALLOWED_SEQUENCE,
            "Template escape sequences such as '<?php' are not allowed.",
        )

    if _WRAPPER_RE.search(text):
        text = _WRAPPER_RE.sub(r"\1", text)
        notices.append(Notice(
            code=NoticeCode.WRAPPER_TAGS_STRIPPED,
            message="Wrapper tags were removed automatically. Enter the inner code only.",
        ))

    size = utf8_length(text)
    if size > max_bytes:
        return _reject(
            RejectionReason.CONTENT_TOO_LARGE,
            f"Content is {size:,} bytes; the maximum is {max_bytes:,} bytes.",
        )

    found = sorted({m.group(1).lower() for m in _EMBED_RE.finditer(text)})
    if found:
        notices.append(Notice(
            code=NoticeCode.DANGEROUS_MARKUP,
            message=f"Content contains embed-capable markup: {', '.join(found)}.",
        ))

    return SanitizedContent(content=text, notices=notices)
