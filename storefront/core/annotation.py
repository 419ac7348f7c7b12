"""
Annotation Line Model

The backend's free-text order note doubles as storage for facts its own
schema cannot hold. Each fact lives on its own line, introduced by a tag:

    [PAYMENT] dana:PAY1:PENDING
    [WAITING_PAYMENT] customer notes
    leave at the front desk

A tag is a case-sensitive `[A-Z_]+` token in brackets at the very start of a
line. Anything else is free text and is carried through untouched.

This module is the only place that knows how to split an annotation into
lines and put it back together. Codecs work on `AnnotationLine` values and
must never scan the raw string themselves.
"""

import re
from dataclasses import dataclass
from typing import List, Optional


TAG_PATTERN = re.compile(r"^\[([A-Z_]+)\]")

PAYMENT_TAG = "PAYMENT"

# Tags owned by a dedicated codec; every other tag is a lifecycle tag.
RESERVED_TAGS = frozenset({PAYMENT_TAG})


class AnnotationValueError(ValueError):
    """A value cannot be written into an annotation."""


@dataclass(frozen=True)
class AnnotationLine:
    """
    One line of an annotation.

    `raw` is the line exactly as stored. For tagged lines `tag` holds the
    token without brackets and `text` the remainder with leading blanks
    removed; for free-text lines `tag` is None and `text == raw`.
    """
    raw: str
    tag: Optional[str] = None
    text: str = ""

    @classmethod
    def parse(cls, raw: str) -> "AnnotationLine":
        match = TAG_PATTERN.match(raw)
        if not match:
            return cls(raw=raw, tag=None, text=raw)
        return cls(raw=raw, tag=match.group(1), text=raw[match.end():].lstrip(" \t"))

    @classmethod
    def tagged(cls, tag: str, text: str = "") -> "AnnotationLine":
        if not TAG_PATTERN.match(f"[{tag}]"):
            raise AnnotationValueError(f"Invalid annotation tag: {tag!r}")
        raw = f"[{tag}] {text}" if text else f"[{tag}]"
        return cls(raw=raw, tag=tag, text=text)

    @classmethod
    def free(cls, text: str) -> "AnnotationLine":
        return cls(raw=text, tag=None, text=text)

    @property
    def is_free_text(self) -> bool:
        return self.tag is None

    @property
    def is_lifecycle(self) -> bool:
        return self.tag is not None and self.tag not in RESERVED_TAGS


def parse_annotation(annotation: Optional[str]) -> List[AnnotationLine]:
    """Split an annotation into lines. Empty or missing annotations have no lines."""
    if not annotation:
        return []
    return [AnnotationLine.parse(raw) for raw in annotation.split("\n")]


def render_annotation(lines: List[AnnotationLine]) -> str:
    """Join lines back into a stored annotation."""
    return "\n".join(line.raw for line in lines)


def find_first(lines: List[AnnotationLine], tag: str) -> Optional[AnnotationLine]:
    """First line carrying `tag`, or None."""
    for line in lines:
        if line.tag == tag:
            return line
    return None


def drop_tag(lines: List[AnnotationLine], tag: str) -> List[AnnotationLine]:
    """All lines except the ones carrying `tag`."""
    return [line for line in lines if line.tag != tag]
