"""
Payment Annotation Codec

Keeps the order's single active payment in its note, on a line of its own:

    [PAYMENT] <provider>:<external_id>:<status>

Only one payment line is ever kept; writing a new record replaces the old
one. The lifecycle tag and free text around it are never touched.
"""

import logging
from typing import Optional

from storefront.core.annotation import (
    PAYMENT_TAG,
    AnnotationLine,
    AnnotationValueError,
    drop_tag,
    find_first,
    parse_annotation,
    render_annotation,
)
from storefront.schemas.order import PaymentRecord

logger = logging.getLogger(__name__)

# Provider statuses that mean the money has arrived. Anything else,
# including statuses we have never seen, counts as still pending.
SETTLED_STATUSES = frozenset({"COMPLETED", "SUCCEEDED", "PAID"})

FIELD_SEPARATOR = ":"


def check_payment_fields(record: PaymentRecord) -> None:
    """
    Reject fields that would break the payment line.

    Raises:
        AnnotationValueError: if a field contains the separator or a line break
    """
    for value in (record.provider, record.payment_id, record.status):
        if FIELD_SEPARATOR in value or "\n" in value or "\r" in value:
            raise AnnotationValueError(f"Payment field may not contain ':' or line breaks: {value!r}")


def encode_payment(record: PaymentRecord, annotation: Optional[str]) -> str:
    """
    Return `annotation` with `record` as its only payment line, placed first.

    Trailing whitespace of the result is trimmed. Fields are checked with
    `check_payment_fields` first.
    """
    check_payment_fields(record)
    fields = (record.provider, record.payment_id, record.status)
    payment_line = AnnotationLine.tagged(PAYMENT_TAG, FIELD_SEPARATOR.join(fields))
    remaining = drop_tag(parse_annotation(annotation), PAYMENT_TAG)
    return render_annotation([payment_line] + remaining).rstrip()


def decode_payment(annotation: Optional[str]) -> Optional[PaymentRecord]:
    """Parse the first payment line. Malformed lines decode to None."""
    line = find_first(parse_annotation(annotation), PAYMENT_TAG)
    if line is None:
        return None

    parts = [part.strip() for part in line.text.split(FIELD_SEPARATOR)]
    if len(parts) != 3 or not all(parts):
        logger.debug(f"Ignoring malformed payment line: {line.raw!r}")
        return None

    provider, payment_id, status = parts
    return PaymentRecord(provider=provider, payment_id=payment_id, status=status)


def is_settled(record: Optional[PaymentRecord]) -> bool:
    """True only for terminal success statuses."""
    if record is None:
        return False
    return record.status.strip().upper() in SETTLED_STATUSES


def is_pending(record: Optional[PaymentRecord]) -> bool:
    """A payment exists and has not settled."""
    return record is not None and not is_settled(record)
